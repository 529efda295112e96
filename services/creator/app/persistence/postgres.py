"""Postgres-backed quest store using a psycopg connection pool."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .store import (
    DialogueRecord,
    QuestRecord,
    QuestStore,
    SceneDetailRecord,
    SceneRecord,
    StoredScene,
    TimelineRecord,
)

logger = logging.getLogger(__name__)

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS quests (
    id UUID PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    area_name TEXT NOT NULL DEFAULT '',
    difficulty TEXT,
    tags JSONB NOT NULL DEFAULT '[]'::jsonb,
    cover_image_url TEXT,
    mission TEXT NOT NULL DEFAULT '',
    clear_condition TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'draft',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS spots (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    quest_id UUID NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
    order_index INTEGER NOT NULL CHECK (order_index >= 1),
    name TEXT NOT NULL,
    address TEXT NOT NULL DEFAULT '',
    lat DOUBLE PRECISION NOT NULL,
    lng DOUBLE PRECISION NOT NULL,
    place_id TEXT,
    scene_role TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (quest_id, order_index)
);

CREATE TABLE IF NOT EXISTS spot_details (
    spot_id UUID PRIMARY KEY REFERENCES spots(id) ON DELETE CASCADE,
    nav_text TEXT NOT NULL DEFAULT '',
    story_text TEXT NOT NULL DEFAULT '',
    handout_text TEXT NOT NULL DEFAULT '',
    puzzle_type TEXT NOT NULL DEFAULT 'logic',
    question_text TEXT NOT NULL DEFAULT '',
    rules_text TEXT,
    hint_text TEXT NOT NULL DEFAULT '',
    answer_text TEXT NOT NULL DEFAULT '',
    solution_steps JSONB NOT NULL DEFAULT '[]'::jsonb,
    puzzle_difficulty SMALLINT,
    completion_message TEXT NOT NULL DEFAULT '',
    lore_reveal TEXT NOT NULL DEFAULT '',
    plot_key TEXT NOT NULL DEFAULT '',
    linking_rationale TEXT NOT NULL DEFAULT '',
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS story_timelines (
    quest_id UUID PRIMARY KEY REFERENCES quests(id) ON DELETE CASCADE,
    prologue TEXT NOT NULL DEFAULT '',
    epilogue TEXT NOT NULL DEFAULT '',
    cast_members JSONB NOT NULL DEFAULT '[]'::jsonb,
    meta_puzzle JSONB,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS spot_story_messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    quest_id UUID NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
    spot_id UUID NOT NULL REFERENCES spots(id) ON DELETE CASCADE,
    stage TEXT NOT NULL CHECK (stage IN ('pre_puzzle', 'post_puzzle')),
    order_index INTEGER NOT NULL CHECK (order_index >= 1),
    speaker_type TEXT NOT NULL CHECK (speaker_type IN ('character', 'narrator')),
    speaker_name TEXT NOT NULL DEFAULT '',
    avatar_url TEXT,
    text TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_spot_story_messages_spot
    ON spot_story_messages (spot_id, stage, order_index);
"""


class PostgresQuestStore(QuestStore):
    """Each method runs on its own pooled connection and commits before returning."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @classmethod
    def from_url(cls, conninfo: str, *, min_size: int = 1, max_size: int = 10) -> "PostgresQuestStore":
        return cls(ConnectionPool(conninfo, min_size=min_size, max_size=max_size, open=True))

    def close(self) -> None:
        self._pool.close()

    def initialise_schema(self) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(SCHEMA_DDL)
            conn.commit()
        logger.info("Quest schema ensured")

    def upsert_quest(self, record: QuestRecord) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO quests (
                    id, title, description, area_name, difficulty, tags,
                    cover_image_url, mission, clear_condition, status, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s, %s, NOW())
                ON CONFLICT (id) DO UPDATE
                SET title = EXCLUDED.title,
                    description = EXCLUDED.description,
                    area_name = EXCLUDED.area_name,
                    difficulty = EXCLUDED.difficulty,
                    tags = EXCLUDED.tags,
                    cover_image_url = EXCLUDED.cover_image_url,
                    mission = EXCLUDED.mission,
                    clear_condition = EXCLUDED.clear_condition,
                    status = EXCLUDED.status,
                    updated_at = NOW()
                """,
                (
                    record.id,
                    record.title,
                    record.description,
                    record.area_name,
                    record.difficulty,
                    json.dumps(record.tags, ensure_ascii=False),
                    record.cover_image_url,
                    record.mission,
                    record.clear_condition,
                    record.status,
                ),
            )
            conn.commit()

    def delete_scenes(self, quest_id: UUID) -> int:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute("DELETE FROM spots WHERE quest_id = %s", (quest_id,))
            deleted = cur.rowcount
            conn.commit()
        return deleted

    def insert_scenes(self, records: Sequence[SceneRecord]) -> None:
        if not records:
            return
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.executemany(
                """
                INSERT INTO spots (quest_id, order_index, name, address, lat, lng, place_id, scene_role)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                [
                    (
                        record.quest_id,
                        record.order_index,
                        record.name,
                        record.address,
                        record.lat,
                        record.lng,
                        record.place_id,
                        record.scene_role,
                    )
                    for record in records
                ],
            )
            conn.commit()

    def select_scenes(self, quest_id: UUID) -> list[StoredScene]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                "SELECT id, order_index FROM spots WHERE quest_id = %s ORDER BY order_index",
                (quest_id,),
            )
            rows = cur.fetchall()
        return [StoredScene(id=row["id"], order_index=row["order_index"]) for row in rows]

    def upsert_scene_details(self, records: Sequence[SceneDetailRecord]) -> None:
        if not records:
            return
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.executemany(
                """
                INSERT INTO spot_details (
                    spot_id, nav_text, story_text, handout_text, puzzle_type, question_text,
                    rules_text, hint_text, answer_text, solution_steps, puzzle_difficulty,
                    completion_message, lore_reveal, plot_key, linking_rationale, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s, %s, %s, NOW())
                ON CONFLICT (spot_id) DO UPDATE
                SET nav_text = EXCLUDED.nav_text,
                    story_text = EXCLUDED.story_text,
                    handout_text = EXCLUDED.handout_text,
                    puzzle_type = EXCLUDED.puzzle_type,
                    question_text = EXCLUDED.question_text,
                    rules_text = EXCLUDED.rules_text,
                    hint_text = EXCLUDED.hint_text,
                    answer_text = EXCLUDED.answer_text,
                    solution_steps = EXCLUDED.solution_steps,
                    puzzle_difficulty = EXCLUDED.puzzle_difficulty,
                    completion_message = EXCLUDED.completion_message,
                    lore_reveal = EXCLUDED.lore_reveal,
                    plot_key = EXCLUDED.plot_key,
                    linking_rationale = EXCLUDED.linking_rationale,
                    updated_at = NOW()
                """,
                [
                    (
                        record.scene_id,
                        record.nav_text,
                        record.story_text,
                        record.handout_text,
                        record.puzzle_type,
                        record.question_text,
                        record.rules_text,
                        record.hint_text,
                        record.answer_text,
                        json.dumps(record.solution_steps, ensure_ascii=False),
                        record.puzzle_difficulty,
                        record.completion_message,
                        record.lore_reveal,
                        record.plot_key,
                        record.linking_rationale,
                    )
                    for record in records
                ],
            )
            conn.commit()

    def upsert_timeline(self, record: TimelineRecord) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO story_timelines (quest_id, prologue, epilogue, cast_members, meta_puzzle, updated_at)
                VALUES (%s, %s, %s, %s::jsonb, %s::jsonb, NOW())
                ON CONFLICT (quest_id) DO UPDATE
                SET prologue = EXCLUDED.prologue,
                    epilogue = EXCLUDED.epilogue,
                    cast_members = EXCLUDED.cast_members,
                    meta_puzzle = EXCLUDED.meta_puzzle,
                    updated_at = NOW()
                """,
                (
                    record.quest_id,
                    record.prologue,
                    record.epilogue,
                    json.dumps(record.cast_members, ensure_ascii=False),
                    json.dumps(record.meta_puzzle, ensure_ascii=False) if record.meta_puzzle is not None else None,
                ),
            )
            conn.commit()

    def delete_dialogue(self, scene_ids: Sequence[UUID]) -> int:
        if not scene_ids:
            return 0
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute("DELETE FROM spot_story_messages WHERE spot_id = ANY(%s)", (list(scene_ids),))
            deleted = cur.rowcount
            conn.commit()
        return deleted

    def insert_dialogue(self, records: Sequence[DialogueRecord]) -> None:
        if not records:
            return
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.executemany(
                """
                INSERT INTO spot_story_messages (
                    quest_id, spot_id, stage, order_index, speaker_type, speaker_name, avatar_url, text
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                [
                    (
                        record.quest_id,
                        record.scene_id,
                        record.stage,
                        record.order_index,
                        record.speaker_type,
                        record.speaker_name,
                        record.avatar_url,
                        record.text,
                    )
                    for record in records
                ],
            )
            conn.commit()

    def count_dialogue(self, quest_id: UUID) -> int:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT COUNT(*) FROM spot_story_messages m
                JOIN spots s ON s.id = m.spot_id
                WHERE s.quest_id = %s
                """,
                (quest_id,),
            )
            row = cur.fetchone()
        return int(row[0]) if row else 0

    def fetch_quest(self, quest_id: UUID) -> Optional[dict[str, Any]]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute("SELECT * FROM quests WHERE id = %s", (quest_id,))
            return cur.fetchone()

    def fetch_scenes(self, quest_id: UUID) -> list[dict[str, Any]]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT s.id, s.quest_id, s.order_index, s.name, s.address, s.lat, s.lng,
                       s.place_id, s.scene_role,
                       d.nav_text, d.story_text, d.handout_text, d.puzzle_type, d.question_text,
                       d.rules_text, d.hint_text, d.answer_text, d.solution_steps,
                       d.puzzle_difficulty, d.completion_message, d.lore_reveal, d.plot_key,
                       d.linking_rationale
                FROM spots s
                LEFT JOIN spot_details d ON d.spot_id = s.id
                WHERE s.quest_id = %s
                ORDER BY s.order_index
                """,
                (quest_id,),
            )
            return cur.fetchall()

    def fetch_timeline(self, quest_id: UUID) -> Optional[dict[str, Any]]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                "SELECT quest_id, prologue, epilogue, cast_members, meta_puzzle FROM story_timelines WHERE quest_id = %s",
                (quest_id,),
            )
            return cur.fetchone()

    def fetch_dialogue(self, quest_id: UUID) -> list[dict[str, Any]]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT m.spot_id AS scene_id, m.stage, m.order_index, m.speaker_type,
                       m.speaker_name, m.avatar_url, m.text
                FROM spot_story_messages m
                JOIN spots s ON s.id = m.spot_id
                WHERE m.quest_id = %s
                ORDER BY s.order_index, (m.stage <> 'pre_puzzle'), m.order_index
                """,
                (quest_id,),
            )
            return cur.fetchall()

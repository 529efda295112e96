"""Tests for the Postgres store's SQL wiring against a recording pool."""

import json
from contextlib import contextmanager
from uuid import uuid4

from services.creator.app.persistence import PostgresQuestStore
from services.creator.app.persistence.store import QuestRecord, SceneRecord


class _RecordingCursor:
    def __init__(self, log: list, rows=None) -> None:
        self._log = log
        self._rows = rows or []
        self.rowcount = len(self._rows)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def execute(self, sql, params=None):
        self._log.append(("execute", " ".join(sql.split()), params))

    def executemany(self, sql, params_seq):
        self._log.append(("executemany", " ".join(sql.split()), list(params_seq)))

    def fetchall(self):
        return self._rows

    def fetchone(self):
        return self._rows[0] if self._rows else None


class _RecordingConnection:
    def __init__(self, pool) -> None:
        self._pool = pool

    def cursor(self, row_factory=None):
        return _RecordingCursor(self._pool.log, self._pool.rows)

    def commit(self):
        self._pool.commits += 1


class _RecordingPool:
    def __init__(self, rows=None) -> None:
        self.log: list = []
        self.rows = rows
        self.commits = 0

    @contextmanager
    def connection(self):
        yield _RecordingConnection(self)


def _quest(quest_id) -> QuestRecord:
    return QuestRecord(
        id=quest_id,
        title="Lantern Walk",
        description="",
        area_name="",
        difficulty="medium",
        tags=["night", "夜"],
        cover_image_url=None,
        mission="",
        clear_condition="",
    )


def test_upsert_quest_serialises_tags_and_commits() -> None:
    pool = _RecordingPool()
    quest_id = uuid4()
    PostgresQuestStore(pool).upsert_quest(_quest(quest_id))

    kind, sql, params = pool.log[0]
    assert kind == "execute"
    assert "ON CONFLICT (id) DO UPDATE" in sql
    assert params[0] == quest_id
    assert json.loads(params[5]) == ["night", "夜"]
    assert pool.commits == 1


def test_insert_scenes_batches_rows() -> None:
    pool = _RecordingPool()
    quest_id = uuid4()
    records = [
        SceneRecord(quest_id=quest_id, order_index=i, name=f"Stop {i}", address="", lat=1.0, lng=2.0, place_id=None, scene_role="")
        for i in (1, 2)
    ]
    PostgresQuestStore(pool).insert_scenes(records)

    kind, sql, params = pool.log[0]
    assert kind == "executemany"
    assert sql.startswith("INSERT INTO spots")
    assert [row[1] for row in params] == [1, 2]


def test_empty_batches_skip_the_database() -> None:
    pool = _RecordingPool()
    store = PostgresQuestStore(pool)
    store.insert_scenes([])
    store.insert_dialogue([])
    assert store.delete_dialogue([]) == 0
    assert pool.log == []


def test_count_dialogue_joins_through_the_quest_scenes() -> None:
    quest_id = uuid4()
    pool = _RecordingPool(rows=[(4,)])
    assert PostgresQuestStore(pool).count_dialogue(quest_id) == 4
    _, sql, params = pool.log[0]
    assert "JOIN spots s ON s.id = m.spot_id" in sql
    assert params == (quest_id,)


def test_select_scenes_maps_rows() -> None:
    scene_id = uuid4()
    pool = _RecordingPool(rows=[{"id": scene_id, "order_index": 1}])
    stored = PostgresQuestStore(pool).select_scenes(uuid4())
    assert stored[0].id == scene_id
    assert "ORDER BY order_index" in pool.log[0][1]


def test_initialise_schema_creates_tables() -> None:
    pool = _RecordingPool()
    PostgresQuestStore(pool).initialise_schema()
    sql = pool.log[0][1]
    for table in ("quests", "spots", "spot_details", "story_timelines", "spot_story_messages"):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in sql
    assert pool.commits == 1

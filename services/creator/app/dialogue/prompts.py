"""Prompts for scene dialogue generation."""

from __future__ import annotations

DIALOGUE_SYSTEM_PROMPT = """
You write short in-world dialogue for a walking mystery quest. Keep each line under
80 characters, stay in character, and never reveal a puzzle answer before the puzzle
is solved. Respond with JSON only.
""".strip()

PRE_PUZZLE_PROMPT = """
Story theme: {theme}
Cast (JSON): {cast_json}
Previous stop: {previous_spot}
Current stop: {spot_name}
Next stop: {next_spot}
Puzzle the players are about to face: {puzzle_text}

Write 3 to 5 lines that greet the players at the current stop and set up the puzzle
without giving it away. Use "narrator" for scene-setting lines.
Return {{"lines": [{{"speakerType": "character|narrator", "speakerName": "...", "text": "..."}}]}}.
""".strip()

POST_PUZZLE_PROMPT = """
Story theme: {theme}
Cast (JSON): {cast_json}
Current stop: {spot_name}
Puzzle just solved: {puzzle_text}
Its answer: {puzzle_answer}
Next stop: {next_spot}

Write 3 to 5 lines reacting to the solved puzzle, revealing what it means for the
story and pointing the players towards the next stop (or the finale if there is none).
Return {{"lines": [{{"speakerType": "character|narrator", "speakerName": "...", "text": "..."}}]}}.
""".strip()

DIALOGUE_SCHEMA = {
    "type": "object",
    "properties": {
        "lines": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "speakerType": {"type": "string", "enum": ["character", "narrator"]},
                    "speakerName": {"type": "string"},
                    "text": {"type": "string"},
                },
                "required": ["speakerType", "text"],
            },
        }
    },
    "required": ["lines"],
}

"""Reusable validation helpers."""

from __future__ import annotations

from typing import Any, Iterable


def clamp_int(value: Any, *, lower: int, upper: int, field_name: str) -> int:
    """Coerce ``value`` to int and clamp it into ``[lower, upper]``."""

    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be an integer") from exc
    return max(lower, min(upper, number))


def unique_trimmed(values: Iterable[Any] | None) -> list[str]:
    """Strip each entry, drop blanks and duplicates, keep first-seen order."""

    if not values:
        return []
    seen: dict[str, None] = {}
    for value in values:
        text = str(value).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)

"""Per-section status tracking for the editing surface.

The store is deliberately permissive: any status may overwrite any other. Only the
orchestrator and the workspace edit commands write to it, and each issues legal
transitions on its own, so pipeline callbacks never block on an out-of-order event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from lantern_schemas import SectionStatus

from .errors import EditConflictError

BASIC_INFO = "basic-info"
STORY = "story"

_SPOT_ID = re.compile(r"^spot-(\d+)$")


def spot_section_id(index: int) -> str:
    return f"spot-{index}"


def spot_index(section_id: str) -> Optional[int]:
    """Return the scene index encoded in ``spot-{i}`` ids, ``None`` for other ids."""

    match = _SPOT_ID.match(section_id)
    return int(match.group(1)) if match else None


def is_known_section(section_id: str) -> bool:
    return section_id in (BASIC_INFO, STORY) or spot_index(section_id) is not None


@dataclass
class SectionState:
    status: SectionStatus
    error: Optional[str] = None


class SectionStore:
    def __init__(self) -> None:
        self._states: Dict[str, SectionState] = {}
        self._scratch: Dict[str, Any] = {}
        self._collapsed: set[str] = set()

    def set_status(self, section_id: str, status: SectionStatus) -> None:
        self._states[section_id] = SectionState(status=status)

    def set_error(self, section_id: str, message: str) -> None:
        self._states[section_id] = SectionState(status=SectionStatus.ERROR, error=message)

    def status(self, section_id: str) -> Optional[SectionStatus]:
        state = self._states.get(section_id)
        return state.status if state else None

    def error(self, section_id: str) -> Optional[str]:
        state = self._states.get(section_id)
        return state.error if state else None

    def clear(self) -> None:
        """Forget every status and scratch copy. Collapse state is presentation only and survives."""

        self._states.clear()
        self._scratch.clear()

    def snapshot(self) -> dict[str, dict[str, Optional[str]]]:
        return {
            section_id: {"status": state.status.value, "error": state.error}
            for section_id, state in self._states.items()
        }

    # Edit lifecycle. ``source`` is the draft sub-object backing the section; the
    # scratch copy isolates an in-progress edit from pipeline writes to siblings.

    def start_edit(self, section_id: str, source: Any) -> Any:
        current = self.status(section_id)
        if current not in (SectionStatus.READY, SectionStatus.UNLOCKED):
            raise EditConflictError(
                f"Section {section_id} cannot be edited while {current.value if current else 'absent'}"
            )
        scratch = source.model_copy(deep=True) if hasattr(source, "model_copy") else source
        self._scratch[section_id] = scratch
        self.set_status(section_id, SectionStatus.EDITING)
        return scratch

    def scratch(self, section_id: str) -> Any:
        if section_id not in self._scratch:
            raise EditConflictError(f"Section {section_id} is not being edited")
        return self._scratch[section_id]

    def replace_scratch(self, section_id: str, value: Any) -> None:
        self.scratch(section_id)
        self._scratch[section_id] = value

    def cancel_edit(self, section_id: str) -> None:
        self.scratch(section_id)
        del self._scratch[section_id]
        self.set_status(section_id, SectionStatus.READY)

    def commit_edit(self, section_id: str) -> Any:
        """Close the edit and hand the scratch copy back for merging into the draft."""

        edited = self.scratch(section_id)
        del self._scratch[section_id]
        self.set_status(section_id, SectionStatus.READY)
        return edited

    def is_editing(self, section_id: str) -> bool:
        return section_id in self._scratch

    def lock(self, section_id: str) -> None:
        if self.status(section_id) not in (SectionStatus.READY, SectionStatus.UNLOCKED):
            raise EditConflictError(f"Section {section_id} must be ready before it can be locked")
        self.set_status(section_id, SectionStatus.LOCKED)

    def unlock(self, section_id: str) -> None:
        if self.status(section_id) is not SectionStatus.LOCKED:
            raise EditConflictError(f"Section {section_id} is not locked")
        self.set_status(section_id, SectionStatus.UNLOCKED)

    def toggle_collapse(self, section_id: str) -> bool:
        """Flip the collapsed flag and return the new value."""

        if section_id in self._collapsed:
            self._collapsed.discard(section_id)
            return False
        self._collapsed.add(section_id)
        return True

    def is_collapsed(self, section_id: str) -> bool:
        return section_id in self._collapsed

    @property
    def collapsed(self) -> list[str]:
        return sorted(self._collapsed)

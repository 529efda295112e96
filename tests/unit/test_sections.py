"""Tests for per-section status tracking and the edit lifecycle."""

import pytest

from lantern_schemas import BasicInfo, SectionStatus

from services.creator.app.errors import EditConflictError
from services.creator.app.sections import (
    BASIC_INFO,
    STORY,
    SectionStore,
    is_known_section,
    spot_index,
    spot_section_id,
)


def test_section_ids() -> None:
    assert spot_section_id(3) == "spot-3"
    assert spot_index("spot-3") == 3
    assert spot_index(STORY) is None
    assert is_known_section(BASIC_INFO)
    assert is_known_section("spot-0")
    assert not is_known_section("spot-x")


def test_edit_works_on_a_deep_copy() -> None:
    store = SectionStore()
    store.set_status(BASIC_INFO, SectionStatus.READY)
    source = BasicInfo(title="Original", tags=["a"])

    scratch = store.start_edit(BASIC_INFO, source)
    scratch.tags.append("b")

    assert source.tags == ["a"]
    assert store.status(BASIC_INFO) is SectionStatus.EDITING
    assert store.is_editing(BASIC_INFO)


def test_cancel_returns_to_ready_and_drops_scratch() -> None:
    store = SectionStore()
    store.set_status(STORY, SectionStatus.READY)
    store.start_edit(STORY, BasicInfo())
    store.cancel_edit(STORY)

    assert store.status(STORY) is SectionStatus.READY
    with pytest.raises(EditConflictError):
        store.scratch(STORY)


def test_cannot_edit_while_generating() -> None:
    store = SectionStore()
    store.set_status("spot-0", SectionStatus.GENERATING)
    with pytest.raises(EditConflictError):
        store.start_edit("spot-0", BasicInfo())


def test_lock_and_unlock() -> None:
    store = SectionStore()
    with pytest.raises(EditConflictError):
        store.lock(BASIC_INFO)

    store.set_status(BASIC_INFO, SectionStatus.READY)
    store.lock(BASIC_INFO)
    assert store.status(BASIC_INFO) is SectionStatus.LOCKED
    with pytest.raises(EditConflictError):
        store.start_edit(BASIC_INFO, BasicInfo())

    store.unlock(BASIC_INFO)
    assert store.status(BASIC_INFO) is SectionStatus.UNLOCKED
    store.start_edit(BASIC_INFO, BasicInfo())
    with pytest.raises(EditConflictError):
        store.unlock(BASIC_INFO)


def test_clear_keeps_collapse_state() -> None:
    store = SectionStore()
    store.set_status(BASIC_INFO, SectionStatus.READY)
    assert store.toggle_collapse("spot-1") is True

    store.clear()

    assert store.snapshot() == {}
    assert store.collapsed == ["spot-1"]
    assert store.toggle_collapse("spot-1") is False
    assert not store.is_collapsed("spot-1")


def test_set_error_is_visible_in_snapshot() -> None:
    store = SectionStore()
    store.set_error(STORY, "boom")
    assert store.snapshot() == {STORY: {"status": "error", "error": "boom"}}

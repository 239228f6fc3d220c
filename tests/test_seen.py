from __future__ import annotations

from finnwatch.seen import SeenTracker


def test_unrecorded_ids_are_new() -> None:
    seen = SeenTracker()

    assert seen.is_new("T1", "111")


def test_record_is_idempotent() -> None:
    seen = SeenTracker()
    seen.record("T1", "111")
    seen.record("T1", "111")

    assert not seen.is_new("T1", "111")
    assert seen.count("T1") == 1


def test_targets_are_tracked_separately() -> None:
    seen = SeenTracker()
    seen.record("T1", "111")

    assert seen.is_new("T2", "111")
    assert seen.count("T2") == 0


def test_reset_forgets_every_target() -> None:
    seen = SeenTracker()
    seen.record("T1", "111")
    seen.record("T2", "222")

    seen.reset()

    assert seen.is_new("T1", "111")
    assert seen.is_new("T2", "222")
    assert seen.count("T1") == 0

from __future__ import annotations

import threading

from engine.dedup import InProgressSet


def test_add_reports_previous_presence() -> None:
    tracker = InProgressSet()

    assert tracker.add("abc123") is False
    assert tracker.add("abc123") is True
    assert "abc123" in tracker
    assert len(tracker) == 1


def test_remove_releases_slot_and_tolerates_missing_ids() -> None:
    tracker = InProgressSet()
    tracker.add("abc123")

    tracker.remove("abc123")
    tracker.remove("never-added")

    assert "abc123" not in tracker
    assert tracker.add("abc123") is False


def test_remove_many_releases_a_batch() -> None:
    tracker = InProgressSet()
    for video_id in ("a1", "b2", "c3"):
        tracker.add(video_id)

    tracker.remove_many(["a1", "c3"])

    assert tracker.snapshot() == frozenset({"b2"})


def test_concurrent_adds_grant_exactly_one_owner() -> None:
    tracker = InProgressSet()
    barrier = threading.Barrier(16)
    owners: list[bool] = []
    owners_lock = threading.Lock()

    def _claim() -> None:
        barrier.wait()
        already_present = tracker.add("contended")
        with owners_lock:
            owners.append(not already_present)

    threads = [threading.Thread(target=_claim) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert owners.count(True) == 1
    assert len(owners) == 16

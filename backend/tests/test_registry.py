import threading

import pytest

from backend.app.core.exceptions import BatchIdCollisionError
from backend.app.services.progress.models import BatchState, SourceFile


FILES = [
    SourceFile(original_name="a.png", stored_path="/tmp/a.png", size=1),
    SourceFile(original_name="b.txt", stored_path="/tmp/b.txt", size=2),
    SourceFile(original_name="c.jpg", stored_path="/tmp/c.jpg", size=3),
]


def test_create_starts_processing(registry):
    view = registry.create("b1", 3, FILES)

    assert view.status is BatchState.PROCESSING
    assert view.total == 3
    assert view.completed == 0
    assert view.output_name is None
    assert [f.original_name for f in view.input_files] == ["a.png", "b.txt", "c.jpg"]
    assert "b1" in registry


def test_duplicate_id_is_rejected(registry):
    registry.create("b1", 3, FILES)

    with pytest.raises(BatchIdCollisionError):
        registry.create("b1", 1, FILES[:1])


def test_progress_percentages_for_three_files(registry):
    registry.create("b1", 3, FILES)
    seen = []
    for completed in (1, 2, 3):
        registry.record_progress("b1", completed)
        seen.append(registry.get("b1").progress)

    assert seen == [33, 67, 100]


def test_progress_never_decreases_or_exceeds_total(registry):
    registry.create("b1", 3, FILES)

    registry.record_progress("b1", 2)
    registry.record_progress("b1", 1)
    assert registry.get("b1").completed == 2

    registry.record_progress("b1", 10)
    assert registry.get("b1").completed == 3


def test_terminal_status_is_sticky(registry):
    registry.create("b1", 3, FILES)
    registry.record_progress("b1", 1)
    assert registry.record_error("b1", "disk full")

    assert not registry.record_progress("b1", 3)
    assert not registry.record_complete("b1", "late.zip")
    assert not registry.record_failed("b1", "exit 1")

    view = registry.get("b1")
    assert view.status is BatchState.ERROR
    assert view.completed == 1
    assert view.output_name is None
    assert view.error == "disk full"


def test_complete_sets_output_name(registry):
    registry.create("b1", 3, FILES)
    registry.record_progress("b1", 3)

    assert registry.record_complete("b1", "vacation.zip")

    view = registry.get("b1")
    assert view.status is BatchState.COMPLETE
    assert view.output_name == "vacation.zip"
    assert view.progress == 100


def test_cancel_wins_over_late_complete(registry):
    registry.create("b1", 3, FILES)
    registry.record_cancelled("b1")

    assert not registry.record_complete("b1", "x.zip")
    assert registry.get("b1").status is BatchState.CANCELLED


def test_unknown_ids_are_ignored(registry):
    assert registry.get("nope") is None
    assert registry.remove("nope") is None
    assert not registry.record_progress("nope", 1)
    assert not registry.record_complete("nope", "x.zip")


def test_remove_returns_last_snapshot(registry):
    registry.create("b1", 3, FILES)
    registry.record_progress("b1", 2)

    removed = registry.remove("b1")

    assert removed.completed == 2
    assert registry.get("b1") is None
    assert len(registry) == 0


def test_views_are_snapshots(registry):
    registry.create("b1", 3, FILES)
    before = registry.get("b1")

    registry.record_progress("b1", 3)

    assert before.completed == 0
    assert registry.get("b1").completed == 3


def test_concurrent_progress_is_monotonic(registry):
    total = 200
    registry.create("b1", total, FILES)
    observed = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            observed.append(registry.get("b1").completed)

    def writer():
        for n in range(1, total + 1):
            registry.record_progress("b1", n)

    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    writers = [threading.Thread(target=writer) for _ in range(4)]
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    stop.set()
    reader_thread.join()

    assert observed == sorted(observed)
    assert all(0 <= n <= total for n in observed)
    assert registry.get("b1").completed == total


def test_finished_at_set_on_terminal_transition(registry):
    registry.create("b1", 3, FILES)
    assert registry.get("b1").finished_at is None

    registry.record_progress("b1", 3)
    assert registry.get("b1").finished_at is None

    registry.record_complete("b1", "x.zip")
    view = registry.get("b1")
    assert view.finished_at is not None
    assert view.finished_at >= view.created_at


def test_claim_cancel_only_once(registry):
    registry.create("b1", 3, FILES)

    first = registry.claim_cancel("b1")
    second = registry.claim_cancel("b1")

    assert first is not None
    assert first.status is BatchState.CANCELLED
    assert second is None
    assert registry.claim_cancel("unknown") is None


def test_claim_cancel_keeps_terminal_status(registry):
    registry.create("b1", 3, FILES)
    registry.record_complete("b1", "x.zip")

    view = registry.claim_cancel("b1")

    assert view.status is BatchState.COMPLETE
    assert view.cancel_requested

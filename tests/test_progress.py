# tests/test_progress.py
import threading

import pytest

from tradedata_export.combination import CombinationKey
from tradedata_export.progress import ProgressSnapshot, ProgressTracker
from tradedata_export.report import CombinationOutcome


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def _key(index):
    return CombinationKey(index=index, hs_code=f"{index:02d}", from_month=202401, to_month=202401)


def test_initial_snapshot():
    tracker = ProgressTracker(4, clock=FakeClock())
    snapshot = tracker.start()

    assert snapshot.current_index == 0
    assert snapshot.total == 4
    assert snapshot.percent == 0.0
    assert snapshot.estimated_time_remaining is None
    assert not snapshot.is_complete


def test_counters_follow_outcomes():
    tracker = ProgressTracker(4, clock=FakeClock())
    tracker.start()
    for i in range(1, 5):
        tracker.job_admitted(_key(i))

    tracker.job_finished(CombinationOutcome.succeeded(_key(1), 3, None, 0.1))
    tracker.job_finished(CombinationOutcome.no_data(_key(2), 0.1))
    tracker.job_finished(CombinationOutcome.failure(_key(3), "boom", 0.1))
    snapshot = tracker.job_finished(CombinationOutcome.cancellation(_key(4)))

    assert (snapshot.succeeded, snapshot.skipped, snapshot.failed, snapshot.cancelled) == (1, 1, 1, 1)
    assert snapshot.current_index == 4
    assert snapshot.in_flight == 0
    assert snapshot.is_complete
    assert snapshot.status_text == "Export completed"


def test_unadmitted_cancellation_does_not_touch_in_flight():
    tracker = ProgressTracker(2, clock=FakeClock())
    tracker.job_admitted(_key(1))
    snapshot = tracker.job_finished(CombinationOutcome.cancellation(_key(2)), was_admitted=False)

    assert snapshot.in_flight == 1
    assert snapshot.cancelled == 1


def test_eta_and_throughput():
    clock = FakeClock(0.0)
    tracker = ProgressTracker(4, clock=clock)
    tracker.start()
    tracker.job_admitted(_key(1))
    clock.now = 30.0
    snapshot = tracker.job_finished(CombinationOutcome.succeeded(_key(1), 3, None, 30.0))

    assert snapshot.elapsed == 30.0
    assert snapshot.percent == 25.0
    assert snapshot.estimated_time_remaining == pytest.approx(90.0)
    assert snapshot.throughput == pytest.approx(2.0)


def test_phase_updates_status_text():
    tracker = ProgressTracker(1, clock=FakeClock())
    snapshot = tracker.phase(_key(1), "Querying database for combination 1")
    assert snapshot.status_text == "Querying database for combination 1"
    assert snapshot.current_label == "HS:01"


def test_snapshots_are_immutable():
    snapshot = ProgressTracker(1, clock=FakeClock()).snapshot()
    assert isinstance(snapshot, ProgressSnapshot)
    with pytest.raises(AttributeError):
        snapshot.current_index = 5


def test_concurrent_updates_are_not_lost():
    """Many threads finishing jobs at once still add up."""
    total = 400
    tracker = ProgressTracker(total)

    def worker(start):
        for i in range(start, start + 100):
            tracker.job_admitted(_key(i))
            tracker.job_finished(CombinationOutcome.succeeded(_key(i), 1, None, 0.0))

    threads = [threading.Thread(target=worker, args=(n * 100 + 1,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snapshot = tracker.snapshot()
    assert snapshot.current_index == total
    assert snapshot.succeeded == total
    assert snapshot.in_flight == 0

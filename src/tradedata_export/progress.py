# src/tradedata_export/progress.py

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .report import OutcomeStatus

ProgressSink = Callable[["ProgressSnapshot"], None]


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time copy of the tracker. Safe to hand to another thread."""
    current_index: int
    total: int
    succeeded: int
    failed: int
    skipped: int
    cancelled: int
    in_flight: int
    status_text: str
    current_label: str
    started_at: float
    taken_at: float

    @property
    def elapsed(self) -> float:
        return max(0.0, self.taken_at - self.started_at)

    @property
    def percent(self) -> float:
        return (self.current_index / self.total * 100) if self.total > 0 else 0.0

    @property
    def is_complete(self) -> bool:
        return self.current_index >= self.total

    @property
    def throughput(self) -> float:
        """Successful files per minute."""
        minutes = self.elapsed / 60
        return self.succeeded / minutes if minutes > 0 else 0.0

    @property
    def estimated_time_remaining(self) -> Optional[float]:
        """Seconds left, or None before the first completion and once complete."""
        if self.current_index <= 0 or self.is_complete:
            return None
        average = self.elapsed / self.current_index
        return average * (self.total - self.current_index)


class ProgressTracker:
    """
    Counters shared by all worker jobs of one batch.
    Every mutation takes the lock; readers only ever see snapshots.
    """

    def __init__(self, total: int, clock: Callable[[], float] = time.monotonic):
        self.total = total
        self._clock = clock
        self._lock = threading.Lock()
        self._current_index = 0
        self._succeeded = 0
        self._failed = 0
        self._skipped = 0
        self._cancelled = 0
        self._in_flight = 0
        self._status_text = "Waiting to start"
        self._current_label = ""
        self._started_at = clock()

    def start(self) -> ProgressSnapshot:
        with self._lock:
            self._started_at = self._clock()
            self._status_text = f"Starting export of {self.total} combination(s)"
            return self._snapshot_locked()

    def job_admitted(self, key) -> ProgressSnapshot:
        with self._lock:
            self._in_flight += 1
            self._current_label = key.display_label()
            self._status_text = f"Processing combination {key.index}/{self.total}"
            return self._snapshot_locked()

    def phase(self, key, text: str) -> ProgressSnapshot:
        with self._lock:
            self._current_label = key.display_label()
            self._status_text = text
            return self._snapshot_locked()

    def job_finished(self, outcome, was_admitted: bool = True) -> ProgressSnapshot:
        """Records a terminal outcome. was_admitted=False for keys cancelled before admission."""
        with self._lock:
            if was_admitted:
                self._in_flight -= 1
            self._current_index += 1
            if outcome.status is OutcomeStatus.SUCCESS:
                self._succeeded += 1
            elif outcome.status is OutcomeStatus.DATA_UNAVAILABLE:
                self._skipped += 1
            elif outcome.status is OutcomeStatus.FAILED:
                self._failed += 1
            else:
                self._cancelled += 1
            self._current_label = outcome.key.display_label()
            self._status_text = f"Combination {outcome.key.index}: {outcome.status.value}"
            if self._current_index >= self.total:
                self._status_text = "Export completed"
            return self._snapshot_locked()

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            current_index=self._current_index,
            total=self.total,
            succeeded=self._succeeded,
            failed=self._failed,
            skipped=self._skipped,
            cancelled=self._cancelled,
            in_flight=self._in_flight,
            status_text=self._status_text,
            current_label=self._current_label,
            started_at=self._started_at,
            taken_at=self._clock(),
        )

# src/tradedata_export/report.py

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .combination import CombinationKey


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    DATA_UNAVAILABLE = "no_data"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CombinationOutcome:
    """Result of processing one combination. Exactly one status holds."""
    key: CombinationKey
    status: OutcomeStatus
    record_count: int = 0
    output_path: Optional[Path] = None
    elapsed: float = 0.0
    error: Optional[str] = None
    # None when the phase never ran
    query_seconds: Optional[float] = None
    write_seconds: Optional[float] = None
    bytes_written: int = 0

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def data_unavailable(self) -> bool:
        return self.status is OutcomeStatus.DATA_UNAVAILABLE

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @property
    def cancelled(self) -> bool:
        return self.status is OutcomeStatus.CANCELLED

    @property
    def message(self) -> str:
        if self.success:
            return f"Export successful. Records: {self.record_count}"
        if self.data_unavailable:
            return "No data available for this combination, skipped"
        if self.cancelled:
            return "Cancelled before completion"
        return self.error or "Unknown error"

    @classmethod
    def succeeded(cls, key, record_count: int, output_path: Path, elapsed: float, **timings) -> "CombinationOutcome":
        return cls(
            key, OutcomeStatus.SUCCESS, record_count=record_count, output_path=output_path, elapsed=elapsed, **timings
        )

    @classmethod
    def no_data(cls, key, elapsed: float, **timings) -> "CombinationOutcome":
        return cls(key, OutcomeStatus.DATA_UNAVAILABLE, elapsed=elapsed, **timings)

    @classmethod
    def failure(cls, key, error: str, elapsed: float, **timings) -> "CombinationOutcome":
        return cls(key, OutcomeStatus.FAILED, elapsed=elapsed, error=error, **timings)

    @classmethod
    def cancellation(cls, key, elapsed: float = 0.0, **timings) -> "CombinationOutcome":
        return cls(key, OutcomeStatus.CANCELLED, elapsed=elapsed, **timings)


@dataclass(frozen=True)
class ExportReport:
    total: int
    succeeded: int
    failed: int
    skipped: int
    cancelled: int
    total_records: int
    started_at: datetime
    finished_at: datetime
    duration: float
    output_directory: Path
    worker_count: int = 0
    outcomes: Tuple[CombinationOutcome, ...] = field(default_factory=tuple)
    queries_executed: int = 0
    total_query_seconds: float = 0.0
    files_written: int = 0
    total_write_seconds: float = 0.0
    total_bytes_written: int = 0
    peak_concurrency: int = 0

    @property
    def overall_success(self) -> bool:
        return self.failed == 0

    @property
    def was_cancelled(self) -> bool:
        return self.cancelled > 0

    @property
    def success_rate(self) -> float:
        return (self.succeeded / self.total * 100) if self.total > 0 else 0.0

    @property
    def status(self) -> str:
        if self.was_cancelled:
            return "cancelled"
        if self.failed == 0:
            return "success"
        if self.succeeded > 0 or self.skipped > 0:
            return "partial"
        return "failed"

    @property
    def average_query_seconds(self) -> float:
        return self.total_query_seconds / self.queries_executed if self.queries_executed else 0.0

    @property
    def average_write_seconds(self) -> float:
        return self.total_write_seconds / self.files_written if self.files_written else 0.0

    @property
    def combinations_per_second(self) -> float:
        """Throughput over combinations that ran to an outcome (cancelled ones excluded)."""
        processed = self.total - self.cancelled
        return processed / self.duration if self.duration > 0 else 0.0

    def failed_outcomes(self) -> List[CombinationOutcome]:
        return [o for o in self.outcomes if o.failed]

    def written_files(self) -> List[Path]:
        return [o.output_path for o in self.outcomes if o.success and o.output_path is not None]


def aggregate_outcomes(
    outcomes: Iterable[CombinationOutcome],
    started_at: datetime,
    output_directory: Path,
    worker_count: int = 0,
    finished_at: Optional[datetime] = None,
    started_monotonic: Optional[float] = None,
    peak_concurrency: int = 0,
) -> ExportReport:
    """
    Folds per-combination outcomes into the final report.

    Runs after every job has joined. Completion order does not matter:
    outcomes are reported in enumeration order.
    """
    ordered = tuple(sorted(outcomes, key=lambda o: o.key.index))
    finished_at = finished_at or datetime.now()
    if started_monotonic is not None:
        duration = time.monotonic() - started_monotonic
    else:
        duration = (finished_at - started_at).total_seconds()

    return ExportReport(
        total=len(ordered),
        succeeded=sum(1 for o in ordered if o.success),
        failed=sum(1 for o in ordered if o.failed),
        skipped=sum(1 for o in ordered if o.data_unavailable),
        cancelled=sum(1 for o in ordered if o.cancelled),
        total_records=sum(o.record_count for o in ordered if o.success),
        started_at=started_at,
        finished_at=finished_at,
        duration=max(0.0, duration),
        output_directory=Path(output_directory),
        worker_count=worker_count,
        outcomes=ordered,
        queries_executed=sum(1 for o in ordered if o.query_seconds is not None),
        total_query_seconds=sum(o.query_seconds for o in ordered if o.query_seconds is not None),
        files_written=sum(1 for o in ordered if o.write_seconds is not None),
        total_write_seconds=sum(o.write_seconds for o in ordered if o.write_seconds is not None),
        total_bytes_written=sum(o.bytes_written for o in ordered),
        peak_concurrency=peak_concurrency,
    )

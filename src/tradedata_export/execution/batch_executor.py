# src/tradedata_export/execution/batch_executor.py
"""Bounded-concurrency execution of one query+export pipeline per combination."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..combination import CombinationKey, FileNameAllocator
from ..config import ConcurrencyPolicy
from ..connectors.base import BaseSpreadsheetWriter, BaseTradeSource
from ..errors import CombinationTimeoutError, ExportWriteError
from ..expansion import expand
from ..planner import available_parallelism, plan_workers
from ..progress import ProgressSink, ProgressSnapshot, ProgressTracker
from ..report import CombinationOutcome, ExportReport, aggregate_outcomes
from ..request import FilterListRequest
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    QUEUED = "queued"
    ADMITTED = "admitted"
    RUNNING_QUERY = "running_query"
    RUNNING_EXPORT = "running_export"
    COMPLETED = "completed"


class PermitPool:
    """
    Counting semaphore that admits jobs to the worker pool.

    Tracks acquires and releases so a finished batch can prove every permit
    came back. Releasing more than was acquired is a bookkeeping bug and raises.
    """

    def __init__(self, size: int, poll_interval: float = 0.1):
        if size < 1:
            raise ValueError("PermitPool size must be at least 1")
        self.size = size
        self.poll_interval = poll_interval
        self._semaphore = threading.BoundedSemaphore(size)
        self._lock = threading.Lock()
        self._held = 0
        self.acquired = 0
        self.released = 0
        self.peak_held = 0

    def acquire(self, cancellation: Optional[CancellationToken] = None) -> bool:
        """
        Blocks until a permit is free.

        Returns:
            True once a permit is held, False if cancellation was requested
            while waiting (no permit is held then)
        """
        while True:
            if cancellation is not None and cancellation.is_cancelled:
                return False
            if self._semaphore.acquire(timeout=self.poll_interval):
                with self._lock:
                    self._held += 1
                    self.acquired += 1
                    self.peak_held = max(self.peak_held, self._held)
                return True

    def release(self) -> None:
        with self._lock:
            if self._held <= 0:
                raise RuntimeError("Permit released more times than it was acquired")
            self._held -= 1
            self.released += 1
        self._semaphore.release()

    @property
    def held(self) -> int:
        with self._lock:
            return self._held

    @property
    def balanced(self) -> bool:
        with self._lock:
            return self.acquired == self.released and self._held == 0


class BatchExecutor:
    """
    Drives every combination of a request through the export pipeline.

    Collaborators are injected: a trade source (refresh + fetch), a
    spreadsheet writer and an optional console logger. At most `worker_count`
    pipelines run their query/export phases at the same time.
    """

    def __init__(
        self,
        source: BaseTradeSource,
        writer: BaseSpreadsheetWriter,
        policy: Optional[ConcurrencyPolicy] = None,
        max_workers: Optional[int] = None,
        combination_timeout: Optional[float] = None,
        logger=None,
        on_transition: Optional[Callable[[CombinationKey, JobState], None]] = None,
        parallelism: Optional[int] = None,
        poll_interval: float = 0.1,
    ):
        self.source = source
        self.writer = writer
        self.policy = policy or ConcurrencyPolicy()
        self.max_workers = max_workers
        self.combination_timeout = combination_timeout
        self.console_logger = logger
        self.on_transition = on_transition
        self.parallelism = parallelism
        self.poll_interval = poll_interval
        self.last_permits: Optional[PermitPool] = None

    def plan(self, total_combinations: int) -> int:
        available = self.parallelism if self.parallelism is not None else available_parallelism()
        return plan_workers(total_combinations, available, self.max_workers, self.policy)

    def run_batch(
        self,
        request: FilterListRequest,
        output_directory: Union[str, Path],
        progress_sink: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ExportReport:
        """
        Exports every combination of a request.

        Args:
            request: Filter value lists and month range
            output_directory: Where spreadsheets are written (created if absent)
            progress_sink: Called with a ProgressSnapshot at every job
                transition, from worker threads
            cancellation: Cooperative cancellation token

        Returns:
            The final ExportReport, also after cancellation

        Raises:
            RequestValidationError: the month range is invalid; nothing ran
        """
        request.validate()
        cancellation = cancellation or CancellationToken()
        self.last_permits = None

        output_dir = Path(output_directory)
        output_dir.mkdir(parents=True, exist_ok=True)

        space = expand(request)
        total = len(space)
        worker_count = self.plan(total)

        started_at = datetime.now()
        started_monotonic = time.monotonic()
        tracker = ProgressTracker(total)
        self._emit(progress_sink, tracker.start())

        logger.info(f"Multi-parameter export started: {total} combination(s), {worker_count} worker(s), output {output_dir}")
        if self.console_logger:
            self.console_logger.start_run(total, worker_count, output_dir)

        outcomes: List[CombinationOutcome] = []
        if total > 0:
            outcomes = self._dispatch(space, worker_count, output_dir, tracker, progress_sink, cancellation)

        report = aggregate_outcomes(
            outcomes,
            started_at=started_at,
            output_directory=output_dir,
            worker_count=worker_count,
            started_monotonic=started_monotonic,
            peak_concurrency=self.last_permits.peak_held if self.last_permits else 0,
        )

        logger.info(
            f"Export summary: {report.succeeded} successful, {report.failed} failed, "
            f"{report.skipped} skipped (no data), {report.cancelled} cancelled, "
            f"{report.total_records} records in {report.duration:.2f}s"
        )
        logger.info(
            f"Performance: {report.queries_executed} queries (avg {report.average_query_seconds:.2f}s), "
            f"{report.files_written} files (avg {report.average_write_seconds:.2f}s, {report.total_bytes_written} bytes), "
            f"{report.combinations_per_second:.2f} combinations/s, peak concurrency {report.peak_concurrency}"
        )
        if self.console_logger:
            self.console_logger.complete_run(report)
        return report

    def _dispatch(
        self,
        space,
        worker_count: int,
        output_dir: Path,
        tracker: ProgressTracker,
        progress_sink: Optional[ProgressSink],
        cancellation: CancellationToken,
    ) -> List[CombinationOutcome]:
        """Admits keys in enumeration order and waits for every dispatched job."""
        permits = PermitPool(worker_count, poll_interval=self.poll_interval)
        self.last_permits = permits
        outcomes: List[CombinationOutcome] = []
        futures = []
        file_names = FileNameAllocator()

        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="export-worker") as pool:
            for key in space:
                self._transition(key, JobState.QUEUED)

                if not permits.acquire(cancellation):
                    outcomes.append(self._cancel_unadmitted(key, tracker, progress_sink))
                    continue

                if cancellation.is_cancelled:
                    permits.release()
                    outcomes.append(self._cancel_unadmitted(key, tracker, progress_sink))
                    continue

                destination = output_dir / file_names.claim(key)
                try:
                    future = pool.submit(
                        self._run_job, key, destination, tracker, permits, progress_sink, cancellation
                    )
                except BaseException:
                    permits.release()
                    raise
                futures.append(future)

            # Jobs convert their own errors into outcomes; anything raised here is a bug
            for future in futures:
                outcomes.append(future.result())

        if not permits.balanced:
            raise RuntimeError(
                f"Permit bookkeeping broken: {permits.acquired} acquired, {permits.released} released"
            )
        if cancellation.is_cancelled:
            logger.info(f"Export cancelled: {cancellation.reason}")
        return outcomes

    def _cancel_unadmitted(self, key: CombinationKey, tracker: ProgressTracker, progress_sink) -> CombinationOutcome:
        outcome = CombinationOutcome.cancellation(key)
        self._transition(key, JobState.COMPLETED)
        self._emit(progress_sink, tracker.job_finished(outcome, was_admitted=False))
        logger.debug(f"Combination {key.index} cancelled before admission")
        return outcome

    def _run_job(
        self,
        key: CombinationKey,
        destination: Path,
        tracker: ProgressTracker,
        permits: PermitPool,
        progress_sink: Optional[ProgressSink],
        cancellation: CancellationToken,
    ) -> CombinationOutcome:
        """One combination, from admission to a terminal outcome. Never raises Exception."""
        started = time.monotonic()
        deadline = started + self.combination_timeout if self.combination_timeout else None
        # Phase timings recorded so far; kept on the outcome even if a later phase fails
        timings = {}
        try:
            self._transition(key, JobState.ADMITTED)
            self._emit(progress_sink, tracker.job_admitted(key))
            logger.info(f"Processing combination {key.index}/{tracker.total}: {key.display_label()}")
            outcome = self._pipeline(
                key, destination, tracker, progress_sink, cancellation, started, deadline, timings
            )
        except Exception as e:
            logger.error(f"Error processing combination {key.index} ({key.display_label()}): {e}", exc_info=True)
            outcome = CombinationOutcome.failure(
                key, f"{type(e).__name__}: {e}", time.monotonic() - started, **timings
            )
        finally:
            permits.release()

        self._transition(key, JobState.COMPLETED)
        self._emit(progress_sink, tracker.job_finished(outcome))
        if self.console_logger:
            self.console_logger.combination_outcome(outcome)
        return outcome

    def _pipeline(
        self,
        key: CombinationKey,
        destination: Path,
        tracker: ProgressTracker,
        progress_sink: Optional[ProgressSink],
        cancellation: CancellationToken,
        started: float,
        deadline: Optional[float],
        timings: dict,
    ) -> CombinationOutcome:
        if self._should_stop(key, cancellation, deadline):
            return CombinationOutcome.cancellation(key, time.monotonic() - started)

        self._transition(key, JobState.RUNNING_QUERY)
        self._emit(progress_sink, tracker.phase(key, f"Querying database for combination {key.index}"))
        trade_filter = key.to_filter()

        query_started = time.monotonic()
        logger.debug(f"Executing refresh for combination {key.index}: {trade_filter.as_params()}")
        self.source.trigger_refresh(trade_filter)

        if self._should_stop(key, cancellation, deadline):
            return CombinationOutcome.cancellation(key, time.monotonic() - started)

        rows = self.source.fetch_rows(trade_filter)
        timings["query_seconds"] = time.monotonic() - query_started
        record_count = len(rows) if rows else 0
        logger.info(
            f"Query returned {record_count} records for combination {key.index} "
            f"in {timings['query_seconds']:.2f}s"
        )

        if record_count == 0:
            logger.info(f"No data found for combination {key.index}: {key.display_label()}, skipping file creation")
            return CombinationOutcome.no_data(key, time.monotonic() - started, **timings)

        if self._should_stop(key, cancellation, deadline):
            return CombinationOutcome.cancellation(key, time.monotonic() - started, **timings)

        self._transition(key, JobState.RUNNING_EXPORT)
        self._emit(progress_sink, tracker.phase(key, f"Writing file for combination {key.index}"))

        write_started = time.monotonic()
        actual_path = Path(self.writer.write(rows, destination))
        size = self._verify_output(actual_path)
        timings["write_seconds"] = time.monotonic() - write_started
        timings["bytes_written"] = size

        elapsed = time.monotonic() - started
        logger.info(f"File created for combination {key.index}: {actual_path} ({record_count} records, {elapsed:.2f}s)")
        return CombinationOutcome.succeeded(key, record_count, actual_path, elapsed, **timings)

    def _should_stop(self, key: CombinationKey, cancellation: CancellationToken, deadline: Optional[float]) -> bool:
        """
        Checkpoint between pipeline phases.

        Returns True when cancellation was requested.

        Raises:
            CombinationTimeoutError: the combination ran past its deadline
        """
        if cancellation.is_cancelled:
            logger.info(f"Processing cancelled for combination {key.index}")
            return True
        if deadline is not None and time.monotonic() > deadline:
            raise CombinationTimeoutError(
                f"Combination exceeded its {self.combination_timeout:g}s time limit"
            )
        return False

    @staticmethod
    def _verify_output(path: Path) -> int:
        """Returns the size of the written file."""
        if not path.exists():
            raise ExportWriteError(f"File was not created: {path}")
        size = path.stat().st_size
        if size == 0:
            raise ExportWriteError(f"File is empty: {path}")
        return size

    def _transition(self, key: CombinationKey, state: JobState) -> None:
        if self.on_transition is not None:
            self.on_transition(key, state)

    @staticmethod
    def _emit(progress_sink: Optional[ProgressSink], snapshot: ProgressSnapshot) -> None:
        if progress_sink is None:
            return
        try:
            progress_sink(snapshot)
        except Exception as e:
            logger.warning(f"Progress sink raised {type(e).__name__}: {e}", exc_info=True)

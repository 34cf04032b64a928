# src/tradedata_export/errors.py

import json
import logging
from pathlib import Path
from datetime import datetime, UTC
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)


class ConnectionError(Exception):
    """Raised when a connector fails to connect to its data source."""
    pass


class ConfigError(Exception):
    """Raised when the export configuration cannot be loaded."""
    pass


class RequestValidationError(ValueError):
    """Raised when a filter request is malformed (bad month serials, from > to)."""
    def __init__(self, message, **kwargs):
        super().__init__(message)
        self.suggestions: List[str] = kwargs.pop("suggestions", [])
        for key, value in kwargs.items():
            setattr(self, key, value)


class ExportWriteError(IOError):
    """Raised when the spreadsheet writer produced no file or an empty one."""
    pass


class CombinationTimeoutError(TimeoutError):
    """Raised at a checkpoint once a combination has run past its deadline."""
    pass


class FailureLog:
    """Collects failed combinations and saves them as a JSON retry list."""

    def __init__(self, run_name: str, error_dir: Path = Path("./errors")):
        self.run_name = run_name
        self.error_dir = error_dir
        self.failures: List[Dict[str, Any]] = []

    def add_failure(self, outcome) -> None:
        """Adds a failed CombinationOutcome."""
        key = outcome.key
        entry = {
            "index": key.index,
            "label": key.display_label(),
            "file_name": key.file_name(),
            "filter": key.to_filter().as_params(),
            "error_message": outcome.error,
            "elapsed_seconds": round(outcome.elapsed, 3),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        self.failures.append(entry)
        logger.debug(f"Combination {key.index} recorded for retry: {outcome.error}")

    def add_report(self, report) -> None:
        """Adds every failed outcome of an ExportReport."""
        for outcome in report.failed_outcomes():
            self.add_failure(outcome)

    def save(self) -> Optional[Path]:
        """Saves all failures to a JSON file. Returns None when there is nothing to save."""
        if not self.failures:
            return None

        self.error_dir.mkdir(parents=True, exist_ok=True)

        timestamp_str = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        error_file = self.error_dir / f"failed_combinations_{timestamp_str}.json"
        summary = {
            "run": self.run_name,
            "total_failures": len(self.failures),
            "timestamp": datetime.now(UTC).isoformat(),
            "failures": self.failures,
        }
        try:
            with open(error_file, "w", encoding="utf-8") as f:
                json.dump(summary, f, indent=2, ensure_ascii=False, default=str)
            logger.info(f"Failure log saved to: {error_file}")
            return error_file
        except OSError as e:
            logger.error(f"Failed to save failure log to {error_file}: {e}", exc_info=True)
            return None

    def has_failures(self) -> bool:
        return bool(self.failures)

    def failure_count(self) -> int:
        return len(self.failures)

"""Run manifest: audit trail of completed batch exports. Never read back to resume."""

import json
import logging
import threading
import uuid
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"


@dataclass
class ManifestEntry:
    """One batch export run."""

    run_id: str
    run_name: str
    source_type: str
    started_at: str
    completed_at: str
    status: str  # success, partial, failed, cancelled
    total_combinations: int
    succeeded: int
    failed: int
    skipped: int
    cancelled: int
    total_records: int
    duration_seconds: float
    output_directory: str
    worker_count: int
    request: Optional[Dict[str, Any]] = None
    failure_log: Optional[str] = None
    queries_executed: int = 0
    total_bytes_written: int = 0
    peak_concurrency: int = 0


def entry_from_report(
    report,
    run_name: str = "export",
    source_type: str = "sqlserver",
    request=None,
    failure_log: Optional[Path] = None,
) -> ManifestEntry:
    """Builds a manifest entry from a finished ExportReport."""
    request_data = None
    if request is not None:
        request_data = {
            "from_month": str(request.from_month),
            "to_month": str(request.to_month),
            "hs_codes": list(request.hs_codes),
            "products": list(request.products),
            "exporters": list(request.exporters),
            "ports": list(request.ports),
            "iec_codes": list(request.iec_codes),
            "countries": list(request.countries),
            "parties": list(request.parties),
        }

    return ManifestEntry(
        run_id=uuid.uuid4().hex[:12],
        run_name=run_name,
        source_type=source_type,
        started_at=report.started_at.isoformat(),
        completed_at=report.finished_at.isoformat(),
        status=report.status,
        total_combinations=report.total,
        succeeded=report.succeeded,
        failed=report.failed,
        skipped=report.skipped,
        cancelled=report.cancelled,
        total_records=report.total_records,
        duration_seconds=round(report.duration, 3),
        output_directory=str(report.output_directory),
        worker_count=report.worker_count,
        request=request_data,
        failure_log=str(failure_log) if failure_log else None,
        queries_executed=report.queries_executed,
        total_bytes_written=report.total_bytes_written,
        peak_concurrency=report.peak_concurrency,
    )


class RunManifest:
    """Manages export run history."""

    def __init__(self, manifest_path: Optional[Path] = None):
        self.manifest_path = Path(manifest_path) if manifest_path else Path("manifest.json")
        self.entries: List[ManifestEntry] = []
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        """Load existing manifest from disk."""
        if self.manifest_path.exists():
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                self.entries = [ManifestEntry(**entry) for entry in data.get("runs", [])]

    def _save(self) -> None:
        """Save manifest to disk."""
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": MANIFEST_VERSION,
            "runs": [asdict(entry) for entry in self.entries]
        }

        temp_path = self.manifest_path.with_name(f"{self.manifest_path.name}.tmp")
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        temp_path.replace(self.manifest_path)

    def add_entry(self, entry: ManifestEntry) -> None:
        with self._lock:
            self.entries.append(entry)
            self._save()
        logger.debug(f"Manifest entry {entry.run_id} ({entry.status}) saved to {self.manifest_path}")

    def get_latest(self, run_name: Optional[str] = None) -> Optional[ManifestEntry]:
        """Most recent run, optionally for one run name."""
        runs = self.get_all(run_name)
        return runs[-1] if runs else None

    def get_all(self, run_name: Optional[str] = None) -> List[ManifestEntry]:
        if run_name:
            return [e for e in self.entries if e.run_name == run_name]
        return list(self.entries)

    def get_failed_runs(self) -> List[ManifestEntry]:
        """Runs with at least one failed combination, cancelled runs included."""
        return [e for e in self.entries if e.failed > 0]

# src/tradedata_export/engine.py
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .combination import FileNameAllocator
from .config import ExportConfig
from .connectors.base import BaseSpreadsheetWriter, BaseTradeSource
from .connectors.registry import get_source
from .execution import BatchExecutor, CancellationToken
from .expansion import expand
from .logging_utils import ExportLogger
from .progress import ProgressSink
from .report import ExportReport
from .request import FilterListRequest
from .writers import ExcelWriter

logger = logging.getLogger(__name__)


def build_executor(
    config: ExportConfig,
    source: Optional[BaseTradeSource] = None,
    writer: Optional[BaseSpreadsheetWriter] = None,
    max_workers: Optional[int] = None,
    console_logger: Optional[ExportLogger] = None,
) -> BatchExecutor:
    """
    Wires collaborators from config into a BatchExecutor.

    A max_workers argument takes precedence over execution.max_workers.
    """
    source = source or get_source(config)
    writer = writer or ExcelWriter(config.excel)
    return BatchExecutor(
        source=source,
        writer=writer,
        policy=config.execution.concurrency,
        max_workers=max_workers if max_workers is not None else config.execution.max_workers,
        combination_timeout=config.execution.combination_timeout,
        logger=console_logger,
    )


def run_export(
    config: ExportConfig,
    request: FilterListRequest,
    output_directory: Optional[Union[str, Path]] = None,
    progress_sink: Optional[ProgressSink] = None,
    cancellation: Optional[CancellationToken] = None,
    max_workers: Optional[int] = None,
    source: Optional[BaseTradeSource] = None,
    writer: Optional[BaseSpreadsheetWriter] = None,
    console_logger: Optional[ExportLogger] = None,
) -> ExportReport:
    """
    Runs a multi-parameter export with collaborators built from config.

    Raises:
        RequestValidationError: bad month range; nothing was exported
        ConfigError: the source cannot be built from config
    """
    request.validate()
    output_dir = Path(output_directory) if output_directory else config.output.resolve_directory()
    executor = build_executor(config, source, writer, max_workers, console_logger)
    try:
        return executor.run_batch(request, output_dir, progress_sink=progress_sink, cancellation=cancellation)
    finally:
        executor.source.close()


def plan_summary(
    config: ExportConfig,
    request: FilterListRequest,
    max_workers: Optional[int] = None,
    preview: int = 10,
    available: Optional[int] = None,
) -> dict:
    """
    What a run would do, without touching the source.

    Returns:
        dict: {"total": int, "workers": int, "file_names": [str], "labels": [str]}
    """
    from .planner import plan_workers

    request.validate()
    space = expand(request)
    override = max_workers if max_workers is not None else config.execution.max_workers
    keys = space.preview(preview)
    file_names = FileNameAllocator()
    return {
        "total": len(space),
        "workers": plan_workers(len(space), available, override, config.execution.concurrency),
        "file_names": [file_names.claim(key) for key in keys],
        "labels": [key.display_label() for key in keys],
    }


#------------------------------------------------------------------------------------------------
# Preflight mode
#------------------------------------------------------------------------------------------------

def preflight_check(
    config: ExportConfig,
    output_directory: Optional[Union[str, Path]] = None,
    source: Optional[BaseTradeSource] = None,
) -> dict:
    """
    Checks the source connection and output directory before a run.

    Returns:
        dict: {
            "passed": bool,
            "checks": [{"name": str, "status": str, "message": str}],
            "errors": [str],
            "duration_s": float
        }
    """
    results = {
        "passed": True,
        "checks": [],
        "errors": [],
        "duration_s": 0
    }
    start_time = datetime.now()

    # Check 1: Config syntax (already validated by Pydantic)
    results["checks"].append({
        "name": "Config Syntax",
        "status": "pass",
        "message": f"Valid configuration, source type '{config.source.type}'"
    })

    # Check 2: Source connection
    try:
        source = source or get_source(config)
        source.test_connection()
        results["checks"].append({
            "name": "Source Connection",
            "status": "pass",
            "message": f"Connected to {config.source.type} source"
        })
    except Exception as e:
        results["passed"] = False
        results["errors"].append(f"Source connection failed: {e}")
        results["checks"].append({
            "name": "Source Connection",
            "status": "fail",
            "message": str(e)
        })

    # Check 3: Output directory writable
    output_dir = Path(output_directory) if output_directory else config.output.resolve_directory()
    test_file = output_dir / ".tradex_test_write"
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        test_file.touch()
        test_file.unlink()
        results["checks"].append({
            "name": "Output Directory",
            "status": "pass",
            "message": f"Writable: {output_dir}"
        })
    except OSError as e:
        results["passed"] = False
        results["errors"].append(f"Cannot write to output directory {output_dir}: {e}")
        results["checks"].append({
            "name": "Output Directory",
            "status": "fail",
            "message": str(e)
        })

    results["duration_s"] = round((datetime.now() - start_time).total_seconds(), 3)
    logger.info(f"Preflight {'passed' if results['passed'] else 'failed'} in {results['duration_s']}s")
    return results

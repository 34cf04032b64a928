# src/tradedata_export/logging_utils.py

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

console = Console()

PACKAGE_LOGGER = "tradedata_export"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(threadName)s %(name)s: %(message)s"


def format_bytes(size: int) -> str:
    """Human-readable byte count, e.g. 5.2 KB"""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def _seconds(value) -> str:
    return "-" if value is None else f"{value:.2f}"


def log_file_path(directory, filename_base: str, today: Optional[datetime] = None) -> Path:
    """Date-stamped log file, e.g. logs/TradeDataEXP_Log_20240115.txt"""
    stamp = (today or datetime.now()).strftime("%Y%m%d")
    return Path(directory) / f"{filename_base}_{stamp}.txt"


def setup_logging(logging_config, today: Optional[datetime] = None) -> Path:
    """
    Attaches a date-stamped file handler to the package logger.
    Calling it twice for the same file does not add a second handler.

    Returns:
        Path of the log file
    """
    path = log_file_path(logging_config.directory, logging_config.filename_base, today)
    path.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, logging_config.level.upper(), logging.INFO))

    for handler in package_logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path.resolve():
            return path

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    return path


class ExportLogger:
    """dbt-style console logger for batch export runs. Safe to call from worker threads."""

    def __init__(self, run_name: str = "export", target: Optional[Console] = None):
        self.run_name = run_name
        self.console = target or console
        self.start_time = None
        self._lock = threading.Lock()

    def _get_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _print(self, text) -> None:
        with self._lock:
            self.console.print(text)

    def start_run(self, total: int, worker_count: int, output_directory) -> None:
        self.start_time = time.time()

        text = Text()
        text.append(f"{self._get_timestamp()} ", style="dim")
        text.append("START ", style="bold cyan")
        text.append(f"run {self.run_name} ", style="bold")
        text.append(f"{total} combination(s), {worker_count} worker(s) → {output_directory}", style="dim")
        self._print(text)

    def info(self, message: str, prefix: str = ""):
        text = Text()
        text.append(f"{self._get_timestamp()} ", style="dim")
        if prefix:
            text.append(f"{prefix} ", style="cyan")
        text.append(message)
        self._print(text)

    def warning(self, message: str):
        text = Text()
        text.append(f"{self._get_timestamp()} ", style="dim")
        text.append("WARN ", style="bold yellow")
        text.append(message, style="yellow")
        self._print(text)

    def error(self, message: str):
        text = Text()
        text.append(f"{self._get_timestamp()} ", style="dim")
        text.append("ERROR ", style="bold red")
        text.append(message, style="red")
        self._print(text)

    def combination_outcome(self, outcome) -> None:
        """One line per finished combination."""
        styles = {
            "success": ("OK", "bold green"),
            "no_data": ("SKIP", "dim"),
            "failed": ("FAIL", "bold red"),
            "cancelled": ("CANCEL", "yellow"),
        }
        label, style = styles.get(outcome.status.value, ("?", "white"))

        text = Text()
        text.append(f"{self._get_timestamp()} ", style="dim")
        text.append(f"{label} ", style=style)
        text.append(f"#{outcome.key.index} {outcome.key.display_label()} ")
        if outcome.success:
            text.append(f"{outcome.record_count} records → {outcome.output_path.name}", style="white")
        elif outcome.failed:
            text.append(outcome.error or "", style="red")
        text.append(f" [in {outcome.elapsed:.2f}s]", style="dim")
        self._print(text)

    def complete_run(self, report) -> None:
        elapsed = report.duration if self.start_time is None else time.time() - self.start_time

        text = Text()
        text.append(f"{self._get_timestamp()} ", style="dim")
        if report.was_cancelled:
            text.append("[CANCELLED] DONE ", style="bold yellow")
        elif report.failed > 0:
            text.append("[WARN] DONE ", style="bold yellow" if report.succeeded > 0 else "bold red")
        elif report.total == 0:
            text.append("- DONE ", style="dim")
        else:
            text.append("[OK] DONE ", style="bold green")
        text.append(f"run {self.run_name} ", style="bold")
        text.append(f"[in {elapsed:.2f}s]", style="dim")
        self._print(text)

        summary = Text()
        summary.append(f"{self._get_timestamp()} ", style="dim")
        summary.append("      → ", style="dim")
        summary.append(f"{report.succeeded} successful, ", style="white")
        summary.append(f"{report.failed} failed, ", style="red" if report.failed else "dim")
        summary.append(f"{report.skipped} skipped (no data)", style="dim")
        if report.cancelled:
            summary.append(f", {report.cancelled} cancelled", style="yellow")
        summary.append(f", {report.total_records} records", style="white")
        self._print(summary)

        performance = Text()
        performance.append(f"{self._get_timestamp()} ", style="dim")
        performance.append("      → ", style="dim")
        performance.append(
            f"{report.queries_executed} queries (avg {report.average_query_seconds:.2f}s), "
            f"{report.files_written} files (avg {report.average_write_seconds:.2f}s, "
            f"{format_bytes(report.total_bytes_written)}), "
            f"{report.combinations_per_second:.2f} combinations/s, "
            f"peak {report.peak_concurrency} concurrent",
            style="dim",
        )
        self._print(performance)

    def separator(self):
        self._print(Text("─" * 80, style="dim"))


def report_table(report, limit: Optional[int] = None) -> Table:
    """Rich table of per-combination outcomes."""
    table = Table(title="Export Results", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Combination", style="cyan")
    table.add_column("Status")
    table.add_column("Records", justify="right")
    table.add_column("File / Error")
    table.add_column("Query (s)", justify="right", style="dim")
    table.add_column("Write (s)", justify="right", style="dim")
    table.add_column("Size", justify="right", style="dim")
    table.add_column("Time (s)", justify="right", style="yellow")

    status_markup = {
        "success": "[green]OK[/green]",
        "no_data": "[dim]NO DATA[/dim]",
        "failed": "[red]FAILED[/red]",
        "cancelled": "[yellow]CANCELLED[/yellow]",
    }
    outcomes = report.outcomes if limit is None else report.outcomes[:limit]
    for outcome in outcomes:
        detail = outcome.output_path.name if outcome.output_path else (outcome.error or "")
        table.add_row(
            str(outcome.key.index),
            escape(outcome.key.display_label()),
            status_markup.get(outcome.status.value, outcome.status.value),
            str(outcome.record_count),
            escape(detail),
            _seconds(outcome.query_seconds),
            _seconds(outcome.write_seconds),
            format_bytes(outcome.bytes_written) if outcome.bytes_written else "-",
            f"{outcome.elapsed:.2f}",
        )
    table.caption = (
        f"{report.queries_executed} queries, avg {report.average_query_seconds:.2f}s | "
        f"{report.files_written} files, avg {report.average_write_seconds:.2f}s, "
        f"{format_bytes(report.total_bytes_written)} | "
        f"{report.combinations_per_second:.2f} combinations/s | peak {report.peak_concurrency} concurrent"
    )
    return table

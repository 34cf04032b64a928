# src/tradedata_export/cli.py
import signal
import typer
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    Progress,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn,
    MofNCompleteColumn,
)
from rich.table import Table

from .config import load_config
from .engine import plan_summary, preflight_check, run_export
from .errors import ConfigError, FailureLog, RequestValidationError
from .execution import CancellationToken
from .logging_utils import ExportLogger, report_table, setup_logging
from .manifest import RunManifest, entry_from_report
from .request import FilterListRequest, current_month_serial

console = Console()
app = typer.Typer(help="Trade data export CLI")

EXIT_CANCELLED = 130


def version_callback(value: bool):
    if value:
        from tradedata_export import __version__
        console.print(f"tradedata-export version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
):
    """TradeData Export - one spreadsheet per filter combination."""
    pass


def _load_config_or_exit(config_file: Optional[Path]):
    try:
        return load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]✗ Failed to load config: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _build_request_or_exit(from_month, to_month, hs, product, exporter, port, iec, country, party) -> FilterListRequest:
    current = current_month_serial()
    request = FilterListRequest.from_raw(
        from_month=from_month or current,
        to_month=to_month or current,
        hs_code=hs,
        product=product,
        exporter=exporter,
        port=port,
        iec=iec,
        country=country,
        party=party,
    )
    try:
        return request.validate()
    except RequestValidationError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        for suggestion in e.suggestions:
            console.print(f"  [dim]→ {escape(suggestion)}[/dim]")
        raise typer.Exit(code=1)


# ======================================================================================
# COMMAND: tradex run
# ======================================================================================
@app.command()
def run(
    hs: Optional[str] = typer.Option(None, "--hs", help="HS codes, comma-separated (prefix match)"),
    product: Optional[str] = typer.Option(None, "--product", help="Products, comma-separated"),
    exporter: Optional[str] = typer.Option(None, "--exporter", help="Indian exporter names, comma-separated"),
    port: Optional[str] = typer.Option(None, "--port", help="Ports of origin, comma-separated"),
    iec: Optional[str] = typer.Option(None, "--iec", help="IEC codes, comma-separated (prefix match)"),
    country: Optional[str] = typer.Option(None, "--country", help="Destination countries, comma-separated"),
    party: Optional[str] = typer.Option(None, "--party", help="Foreign importer names, comma-separated"),
    from_month: Optional[str] = typer.Option(None, "--from", help="From month, YYYYMM (default: current month)"),
    to_month: Optional[str] = typer.Option(None, "--to", help="To month, YYYYMM (default: current month)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to export.yml"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Maximum concurrent combinations"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt for large batches"),
):
    """Export one spreadsheet per filter combination."""
    console.print("\n[bold cyan]🚀 TradeData Export[/bold cyan]\n")

    config = _load_config_or_exit(config_file)
    log_path = setup_logging(config.logging)
    request = _build_request_or_exit(from_month, to_month, hs, product, exporter, port, iec, country, party)

    total = request.total_combinations
    if total == 0:
        console.print("[yellow][WARN] No combinations to export[/yellow]")
        raise typer.Exit(code=0)

    if total > config.execution.confirm_threshold and not yes:
        if not typer.confirm(f"This will process {total} combinations. Continue?", default=False):
            console.print("[dim]Export cancelled.[/dim]")
            raise typer.Exit(code=0)

    cancellation = CancellationToken()
    previous_handler = signal.getsignal(signal.SIGINT)

    def _on_interrupt(signum, frame):
        if cancellation.is_cancelled:
            # Second Ctrl-C: stop waiting for in-flight combinations
            signal.signal(signal.SIGINT, previous_handler)
            raise KeyboardInterrupt
        console.print("\n[yellow]Cancelling... waiting for running combinations to finish[/yellow]")
        cancellation.cancel("Cancelled by user (Ctrl-C)")

    signal.signal(signal.SIGINT, _on_interrupt)
    export_logger = ExportLogger("export", target=console)

    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Exporting", total=total)

            def _sink(snapshot):
                progress.update(
                    task,
                    completed=snapshot.current_index,
                    description=f"{snapshot.status_text[:50]}",
                )

            report = run_export(
                config,
                request,
                output_directory=output,
                progress_sink=_sink,
                cancellation=cancellation,
                max_workers=workers,
                console_logger=export_logger,
            )
    except ConfigError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    console.print(report_table(report, limit=50))
    if report.total > 50:
        console.print(f"[dim]... {report.total - 50} more combination(s) in the log file[/dim]")

    failure_log = FailureLog("export", error_dir=Path(config.output.error_directory))
    failure_log.add_report(report)
    failure_file = failure_log.save()
    if failure_file:
        console.print(f"[yellow]Failed combinations saved to {failure_file}[/yellow]")

    RunManifest(Path(config.output.manifest_path)).add_entry(
        entry_from_report(report, source_type=config.source.type, request=request, failure_log=failure_file)
    )

    console.print(
        f"\nOutput: {report.output_directory}\n"
        f"Log file: {log_path}\n"
        f"Files created: {report.succeeded} | No data: {report.skipped} | "
        f"Failed: {report.failed} | Cancelled: {report.cancelled} | Records: {report.total_records}"
    )

    if report.failed > 0:
        raise typer.Exit(code=1)
    if report.was_cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)
    raise typer.Exit(code=0)


# ======================================================================================
# COMMAND: tradex plan
# ======================================================================================
@app.command()
def plan(
    hs: Optional[str] = typer.Option(None, "--hs"),
    product: Optional[str] = typer.Option(None, "--product"),
    exporter: Optional[str] = typer.Option(None, "--exporter"),
    port: Optional[str] = typer.Option(None, "--port"),
    iec: Optional[str] = typer.Option(None, "--iec"),
    country: Optional[str] = typer.Option(None, "--country"),
    party: Optional[str] = typer.Option(None, "--party"),
    from_month: Optional[str] = typer.Option(None, "--from"),
    to_month: Optional[str] = typer.Option(None, "--to"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1),
    limit: int = typer.Option(10, "--limit", "-n", help="How many file names to preview"),
):
    """Show how many combinations a run would export, without exporting."""
    config = _load_config_or_exit(config_file)
    request = _build_request_or_exit(from_month, to_month, hs, product, exporter, port, iec, country, party)

    summary = plan_summary(config, request, max_workers=workers, preview=limit)

    console.print(f"Combinations: {summary['total']}")
    console.print(f"Workers: {summary['workers']}")

    if summary["file_names"]:
        table = Table(title="Planned Files", show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Combination", style="cyan")
        table.add_column("File", style="white")
        for index, (label, name) in enumerate(zip(summary["labels"], summary["file_names"]), start=1):
            table.add_row(str(index), label, f"{name}.xlsx")
        console.print(table)
        if summary["total"] > len(summary["file_names"]):
            console.print(f"[dim]... and {summary['total'] - len(summary['file_names'])} more[/dim]")

    raise typer.Exit(code=0)


# ======================================================================================
# COMMAND: tradex preflight
# ======================================================================================
@app.command()
def preflight(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to export.yml"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
):
    """Check the source connection and output directory without exporting."""
    config = _load_config_or_exit(config_file)
    results = preflight_check(config, output_directory=output)

    for check in results["checks"]:
        icon = "[green]✓[/green]" if check["status"] == "pass" else "[red]✗[/red]"
        console.print(f"{icon} {check['name']}: {escape(check['message'])}")

    if results["passed"]:
        console.print(f"\n[green bold]Preflight passed[/green bold] [dim]({results['duration_s']}s)[/dim]")
    else:
        console.print(f"\n[red bold]Preflight failed[/red bold] ({len(results['errors'])} error(s))")

    raise typer.Exit(code=0 if results["passed"] else 1)


# ======================================================================================
# COMMAND: tradex manifest
# ======================================================================================
@app.command()
def manifest(
    failed_only: bool = typer.Option(False, "--failed", help="Show only runs with failed combinations"),
    manifest_path: Optional[Path] = typer.Option(
        None,
        "--manifest-path",
        "-m",
        help="Path to manifest file (default: output.manifest_path from config)",
    ),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to export.yml"),
    limit: int = typer.Option(10, "--limit", "-n", help="How many recent runs to show"),
):
    """Show export run history."""
    console.print("\n[bold cyan]📜 Export Manifest[/bold cyan]\n")

    if manifest_path is None:
        manifest_path = Path(_load_config_or_exit(config_file).output.manifest_path)

    if not manifest_path.exists():
        console.print(f"[yellow][WARN] Manifest file not found: {escape(str(manifest_path))}[/yellow]")
        raise typer.Exit(code=0)

    try:
        run_manifest = RunManifest(manifest_path)
    except (ValueError, TypeError) as e:
        console.print(f"[red]✗ Error reading manifest: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    entries = run_manifest.get_failed_runs() if failed_only else run_manifest.get_all()
    if not entries:
        console.print("[dim]No export runs found.[/dim]")
        raise typer.Exit(code=0)

    table = Table(title="Export Manifest", show_header=True, header_style="bold cyan")
    table.add_column("Run", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("OK / No data / Failed / Cancelled", style="white")
    table.add_column("Records", justify="right")
    table.add_column("Duration (s)", style="yellow")
    table.add_column("Started", style="dim")

    for e in entries[-limit:]:
        table.add_row(
            e.run_id,
            e.status,
            f"{e.succeeded} / {e.skipped} / {e.failed} / {e.cancelled}",
            str(e.total_records),
            str(round(float(e.duration_seconds or 0), 2)),
            str(e.started_at),
        )
    console.print(table)

    console.print("\nSummary (plain text):")
    for e in entries[-limit:]:
        typer.echo(f"{e.run_id} | {e.status} | {e.succeeded} ok, {e.failed} failed | {e.total_records} records")

    raise typer.Exit(code=0)


if __name__ == "__main__":
    app()

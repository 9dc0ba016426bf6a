"""Main CLI application for ShareAudit."""

import asyncio
from pathlib import Path
from typing import Dict, Optional

import aiohttp
import typer
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from ..adapters.graph import GraphClient, build_token_provider
from ..config import get_settings
from ..errors import ShareAuditError
from ..logging import get_logger, setup_logging
from ..models.remediation import (
    PreviewSummary,
    RemediationAction,
    RemediationPlan,
    RemediationReport,
)
from ..models.scans import ScanResult
from ..orchestrator import RemediationEngine, ScanResultStore, TreeWalker
from ..reports import (
    load_plan,
    write_findings_csv,
    write_plan,
    write_remediation_report,
    write_scan_result,
)

app = typer.Typer(
    name="shareaudit",
    help="Find and remediate anonymous sharing links in SharePoint and OneDrive",
    add_completion=False
)

console = Console()
logger = get_logger(__name__)


@app.command()
def scan(
    output: Path = typer.Option(
        Path("scan_results.json"), "--output", "-o", help="Scan result JSON file"
    ),
    plan_output: Optional[Path] = typer.Option(
        None, "--plan", help="Also write a remediation plan to this file"
    ),
    csv_output: Optional[Path] = typer.Option(
        None, "--csv", help="Also write findings as CSV"
    ),
    site_filter: Optional[str] = typer.Option(
        None, "--site-filter", "-s", help="Regex; only matching sites are scanned"
    ),
    max_concurrency: Optional[int] = typer.Option(
        None, "--max-concurrency", "-c", min=1, help="Traversal units in flight"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Stop scanning after this many seconds"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
) -> None:
    """Scan every site for anonymous and guest sharing."""
    settings = get_settings()
    if verbose:
        setup_logging("DEBUG")

    console.print(f"[bold blue]ShareAudit[/bold blue] - Scan")
    console.print(f"Site filter: {site_filter or settings.site_filter or 'all sites'}")
    console.print(f"Concurrency: {max_concurrency or settings.max_concurrency}")
    console.print()

    try:
        result = asyncio.run(
            _run_scan(site_filter, max_concurrency, timeout or settings.scan_timeout, output)
        )
    except (ShareAuditError, ValueError) as e:
        console.print(f"[red]Scan failed: {e}[/red]")
        logger.error("Scan failed", error=str(e))
        raise typer.Exit(1)

    write_scan_result(result, output)
    console.print(f"Results saved to: {output}")
    if csv_output:
        write_findings_csv(result, csv_output)
        console.print(f"CSV saved to: {csv_output}")
    if plan_output and result.findings:
        write_plan(RemediationPlan.from_scan_result(result), plan_output)
        console.print(f"Plan saved to: {plan_output}")

    _display_scan_results(result)


@app.command()
def plan(
    scan_file: Path = typer.Argument(..., help="Scan result JSON file"),
    output: Path = typer.Option(
        Path("remediation_plan.json"), "--output", "-o", help="Plan output file"
    ),
) -> None:
    """Turn a scan result into a remediation plan."""
    try:
        remediation_plan = load_plan(scan_file)
    except ShareAuditError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    write_plan(remediation_plan, output)
    console.print(f"[green]Plan with {remediation_plan.total_items} items saved to: {output}[/green]")


@app.command()
def preview(
    plan_file: Path = typer.Argument(..., help="Remediation plan or scan result file"),
) -> None:
    """Show what a plan covers. Read-only; needs no credentials."""
    try:
        remediation_plan = load_plan(plan_file)
        summary = RemediationEngine().preview(remediation_plan)
    except ShareAuditError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    _display_preview(summary)


@app.command()
def remediate(
    plan_file: Path = typer.Argument(..., help="Remediation plan or scan result file"),
    action: RemediationAction = typer.Option(
        ..., "--action", "-a", case_sensitive=False, help="Action to apply to every item"
    ),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", min=1, max=365, help="Days until expiry (set_expiration)"
    ),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", min=1, max=50, help="Items per batch"
    ),
    dry_run: Optional[bool] = typer.Option(
        None, "--dry-run/--no-dry-run", help="Report what would change without changing it"
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the confirmation prompt"
    ),
    report_file: Path = typer.Option(
        Path("remediation_report.json"), "--report", "-r", help="Report output file"
    ),
) -> None:
    """Apply a remediation action to every item of a plan."""
    settings = get_settings()
    dry_run = settings.dry_run if dry_run is None else dry_run

    try:
        remediation_plan = load_plan(plan_file)
    except ShareAuditError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if action is RemediationAction.PREVIEW:
        _display_preview(RemediationEngine(batch_size=batch_size).preview(remediation_plan))
        return

    console.print(f"[bold blue]ShareAudit[/bold blue] - Remediation")
    console.print(f"Action: {action.value}")
    console.print(f"Items: {remediation_plan.total_items}")
    console.print(f"Dry-run: {dry_run}")
    console.print()

    def confirm(p: RemediationPlan, a: RemediationAction) -> bool:
        if yes:
            return True
        return Confirm.ask(
            f"Apply [bold]{a.value}[/bold] to {p.total_items} permission(s)?", default=False
        )

    try:
        report = asyncio.run(
            _run_remediation(remediation_plan, action, days, batch_size, dry_run, confirm)
        )
    except (ShareAuditError, ValueError) as e:
        console.print(f"[red]Remediation failed: {e}[/red]")
        logger.error("Remediation failed", error=str(e))
        raise typer.Exit(1)

    write_remediation_report(report, report_file)
    _display_remediation_report(report)
    console.print(f"Report saved to: {report_file}")

    if report.cancelled:
        console.print("[yellow]Remediation cancelled - nothing was changed.[/yellow]")
        raise typer.Exit(1)


def partial_output_path(output: Path) -> Path:
    """Where an interrupted scan is saved: beside ``output`` with a .partial infix."""
    return output.with_name(f"{output.stem}.partial{output.suffix or '.json'}")


async def _run_scan(
    site_filter: Optional[str],
    max_concurrency: Optional[int],
    timeout: Optional[float],
    output: Path,
) -> ScanResult:
    """Run the tree walker, keeping partial results on timeout or interrupt."""
    settings = get_settings()
    store = ScanResultStore()

    async with aiohttp.ClientSession() as session:
        client = GraphClient(session, build_token_provider(settings, session))
        walker = TreeWalker(client, max_concurrency=max_concurrency, site_filter=site_filter)
        try:
            if timeout:
                return await asyncio.wait_for(walker.scan(store), timeout)
            return await walker.scan(store)
        except asyncio.TimeoutError:
            console.print(f"[yellow]Scan timed out after {timeout}s - saving partial results[/yellow]")
            logger.warning("Scan timed out", timeout=timeout)
            return store.snapshot(partial=True)
        except asyncio.CancelledError:
            # Interrupted: persist what we have before the loop shuts down
            write_scan_result(store.snapshot(partial=True), partial_output_path(output))
            raise


async def _run_remediation(
    remediation_plan: RemediationPlan,
    action: RemediationAction,
    days: Optional[int],
    batch_size: Optional[int],
    dry_run: bool,
    confirm,
) -> RemediationReport:
    settings = get_settings()
    async with aiohttp.ClientSession() as session:
        client = GraphClient(session, build_token_provider(settings, session))
        engine = RemediationEngine(client, batch_size=batch_size)
        return await engine.run(
            remediation_plan, action, days=days, dry_run=dry_run, confirm=confirm
        )


def _counts_table(title: str, label: str, counts: Dict[str, int]) -> Table:
    table = Table(title=title)
    table.add_column(label, style="cyan")
    table.add_column("Count", style="green", justify="right")
    for key, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        table.add_row(key, str(count))
    return table


def _display_preview(summary: PreviewSummary) -> None:
    console.print()
    console.print(f"[bold green]Plan preview[/bold green] - {summary.total} item(s)")
    console.print(_counts_table("By site", "Site", summary.by_site))
    console.print(_counts_table("By link scope", "Scope", summary.by_scope))
    console.print(_counts_table("By link type", "Type", summary.by_link_type))


def _display_scan_results(result: ScanResult) -> None:
    """Display scan results in a nice format."""
    console.print()
    title = "Scan Summary (partial)" if result.partial else "Scan Summary"
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Sites", str(result.stats.sites_scanned))
    table.add_row("Drives", str(result.stats.drives_scanned))
    table.add_row("Items", str(result.stats.items_scanned))
    table.add_row("Findings", str(result.stats.findings_count))
    table.add_row("Errors", str(result.stats.error_count))
    table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(table)

    if result.findings:
        findings_table = Table(title="Findings")
        findings_table.add_column("Site", style="cyan")
        findings_table.add_column("Path", style="white")
        findings_table.add_column("Scope", style="red")
        findings_table.add_column("Reason", style="yellow")
        for finding in result.findings[:50]:
            findings_table.add_row(
                finding.site_name,
                finding.ref.item_path,
                finding.link_scope or "-",
                finding.classification_reason,
            )
        console.print(findings_table)
        if len(result.findings) > 50:
            console.print(f"... and {len(result.findings) - 50} more (see output file)")


def _display_remediation_report(report: RemediationReport) -> None:
    console.print()
    table = Table(title=f"Remediation: {report.action.value}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total", str(report.total))
    table.add_row("Processed", str(report.processed))
    table.add_row("Succeeded", str(report.succeeded))
    table.add_row("Failed", f"[red]{report.failed}[/red]" if report.failed else "0")
    table.add_row("Skipped", str(report.skipped))
    table.add_row("Batches", str(report.batches))
    if report.duration_seconds is not None:
        table.add_row("Duration", f"{report.duration_seconds:.2f}s")
    console.print(table)


if __name__ == "__main__":
    app()

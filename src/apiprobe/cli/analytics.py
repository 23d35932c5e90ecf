"""Analytics and request-log commands."""

import asyncio

import typer
from rich.box import ROUNDED
from rich.table import Table

from apiprobe.cli._console import console, dim, error_panel, nl, setup_logging
from apiprobe.errors import ValidationError
from apiprobe.models import AnalyticsSummary, RequestLogRecord
from apiprobe.service import ProbeService
from apiprobe.store import create_record_store


def analytics(
    api_id: str = typer.Argument(..., help="Tested API id"),
    time_range: str = typer.Option(
        "last7d",
        "--range",
        "-r",
        help="last24h, last7d, last30d or allTime (24h/7d/30d/all also accepted)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show usage analytics for every subscription of an API."""
    setup_logging(verbose=verbose)
    try:
        summary = asyncio.run(_analytics(api_id, time_range))
    except ValidationError as e:
        error_panel(str(e), title="Invalid analytics request")
        raise typer.Exit(1)
    _print_summary(api_id, summary)


def logs(
    api_id: str = typer.Argument(..., help="Tested API id"),
    status: str = typer.Option(
        "all", "--status", help="all, success, warning (3xx) or error (4xx/5xx/failed)"
    ),
    method: str | None = typer.Option(None, "--method", "-X", help="Only this method"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum rows"),
    show_secrets: bool = typer.Option(
        False, "--show-secrets", help="Show credentials in cleartext"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List recent request logs for an API, newest first."""
    setup_logging(verbose=verbose)
    try:
        records = asyncio.run(
            _logs(api_id, status, method, limit, redact=not show_secrets)
        )
    except ValidationError as e:
        error_panel(str(e), title="Invalid filter")
        raise typer.Exit(1)
    _print_records(records)


async def _analytics(api_id: str, time_range: str) -> AnalyticsSummary:
    async with ProbeService(create_record_store()) as service:
        return await service.api_analytics(api_id, time_range)


async def _logs(
    api_id: str,
    status: str,
    method: str | None,
    limit: int | None,
    *,
    redact: bool,
) -> list[RequestLogRecord]:
    async with ProbeService(create_record_store()) as service:
        return await service.recent_requests(
            api_id, status_filter=status, method=method, limit=limit, redact=redact
        )


def _print_summary(api_id: str, summary: AnalyticsSummary) -> None:
    nl()
    if summary.total_requests == 0:
        dim(f"No usage data for {api_id} in this window")
        nl()
        return

    overview = Table(title=f"[bold]{api_id}[/bold]", box=ROUNDED, show_header=False)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value")
    overview.add_row("Requests", str(summary.total_requests))
    overview.add_row("Success rate", f"{summary.success_rate:.2f}%")
    overview.add_row("Avg response", f"{summary.avg_response_time_ms:.2f}ms")
    console.print(overview)

    bands = Table(box=ROUNDED, header_style="bold")
    bands.add_column("Status")
    bands.add_column("Count", justify="right")
    for band, count in summary.status_bands.items():
        bands.add_row(band.label, str(count))
    console.print(bands)

    methods = Table(box=ROUNDED, header_style="bold")
    methods.add_column("Method")
    methods.add_column("Count", justify="right")
    for method, count in summary.method_counts.items():
        methods.add_row(method, str(count))
    console.print(methods)

    endpoints = Table(box=ROUNDED, header_style="bold")
    endpoints.add_column("Endpoint")
    endpoints.add_column("Count", justify="right")
    for item in summary.top_endpoints:
        endpoints.add_row(item.endpoint, str(item.count))
    console.print(endpoints)

    daily = Table(box=ROUNDED, header_style="bold")
    daily.add_column("Date (UTC)")
    daily.add_column("Requests", justify="right")
    for item in summary.daily_usage:
        daily.add_row(item.date.isoformat(), str(item.count))
    console.print(daily)
    nl()


def _print_records(records: list[RequestLogRecord]) -> None:
    nl()
    if not records:
        dim("No request logs found")
        nl()
        return

    table = Table(box=ROUNDED, header_style="bold")
    table.add_column("Time (UTC)")
    table.add_column("Method")
    table.add_column("Endpoint")
    table.add_column("Status", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Auth", style="dim")
    for record in records:
        status = str(record.status_code) if record.status_code else "Error"
        auth_values = ", ".join(
            f"{name}: {value}"
            for name, value in record.request_headers.items()
            if name.lower() in ("authorization", "x-api-key")
        )
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.method,
            record.endpoint_path,
            status,
            f"{record.response_time_ms or 0}ms",
            auth_values,
        )
    console.print(table)
    nl()

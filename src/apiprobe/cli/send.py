"""Send command for probing a single endpoint."""

import asyncio
import json

import typer
from rich.box import ROUNDED
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from apiprobe.auth import mask_secret
from apiprobe.builder import encode_component
from apiprobe.cli._console import console, error_panel, nl, setup_logging, warning
from apiprobe.cli._parsing import parse_pairs
from apiprobe.errors import ValidationError
from apiprobe.models import (
    AuthConfig,
    AuthLocation,
    AuthType,
    JsonBody,
    Outcome,
    RequestDescription,
)
from apiprobe.service import ExecutionResult, ProbeService
from apiprobe.store import create_record_store


def send(
    base_url: str = typer.Argument(..., help="Base URL of the API under test"),
    path: str = typer.Argument("", help="Endpoint path, joined onto the base URL"),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method"),
    query: list[str] = typer.Option(
        None, "--query", "-q", help="Query parameter as key=value (repeatable)"
    ),
    header: list[str] = typer.Option(
        None, "--header", "-H", help="Request header as key=value (repeatable)"
    ),
    body: str | None = typer.Option(None, "--body", "-d", help="Raw request body"),
    auth_type: AuthType = typer.Option(AuthType.NONE, "--auth", help="Auth scheme"),
    key_name: str = typer.Option("", "--key-name", help="API key header/param name"),
    location: AuthLocation = typer.Option(
        AuthLocation.HEADER, "--location", help="Where the API key goes"
    ),
    secret: str = typer.Option(
        "", "--secret", envvar="APIPROBE_SECRET", help="API key or bearer token"
    ),
    subscription: str | None = typer.Option(
        None, "--subscription", "-s", help="Subscription id to log the request under"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Send one request to a third-party API and show the response.

    Examples:
        apiprobe send https://api.example.com /users
        apiprobe send https://api.example.com users -q page=2 --auth bearer --secret tok
        apiprobe send https://api.example.com /orders -X POST -d '{"sku": "A1"}' -s sub_1
    """
    setup_logging(verbose=verbose)

    description = RequestDescription(
        base_url=base_url,
        path=path,
        method=method,
        query_params=parse_pairs(query, option="--query"),
        headers=parse_pairs(header, option="--header"),
        body=body,
    )
    auth = AuthConfig(type=auth_type, key_name=key_name, location=location, secret=secret)

    try:
        result = asyncio.run(_send(description, auth, subscription, timeout))
    except ValidationError as e:
        error_panel(str(e), title="Invalid request")
        raise typer.Exit(1)

    _print_result(result, auth)
    if result.persistence_warning is not None:
        warning(str(result.persistence_warning))
    if result.outcome.is_transport_failure:
        raise typer.Exit(2)


async def _send(
    description: RequestDescription,
    auth: AuthConfig,
    subscription_id: str | None,
    timeout: float | None,
) -> ExecutionResult:
    async with ProbeService(create_record_store()) as service:
        return await service.execute(
            description, auth, subscription_id=subscription_id, timeout=timeout
        )


def _display_url(url: str, auth: AuthConfig) -> str:
    if not auth.secret:
        return url
    return url.replace(encode_component(auth.secret), mask_secret(auth.secret))


def _status_style(outcome: Outcome) -> str:
    if outcome.ok:
        return "green"
    if 300 <= outcome.status < 400:
        return "yellow"
    return "red"


def _print_result(result: ExecutionResult, auth: AuthConfig) -> None:
    outcome = result.outcome
    style = _status_style(outcome)

    lines: list[Text] = []
    line = Text()
    line.append(f"{result.spec.method.value} ", style="cyan bold")
    line.append(_display_url(result.spec.url, auth), style="dim")
    lines.append(line)

    line = Text()
    if outcome.is_transport_failure:
        line.append("✗ ", style="red bold")
        line.append(outcome.error_message or "No response", style="red")
    else:
        line.append(f"{outcome.status} {outcome.status_text}".rstrip(), style=f"{style} bold")
    line.append(f"  {outcome.elapsed_ms}ms", style="dim")
    lines.append(line)

    if result.record_id:
        line = Text()
        line.append("logged ", style="bold")
        line.append(result.record_id, style="dim")
        lines.append(line)

    console.print(
        Panel(
            Text("\n").join(lines),
            title="[bold]apiprobe send[/bold]",
            title_align="left",
            border_style=f"{style} dim",
            box=ROUNDED,
            padding=(0, 1),
            expand=False,
        )
    )

    if outcome.response_headers:
        table = Table(box=ROUNDED, show_header=True, header_style="bold")
        table.add_column("Header")
        table.add_column("Value", style="dim")
        for name, value in outcome.response_headers.items():
            table.add_row(name, value)
        console.print(table)

    if outcome.response_body is not None:
        if isinstance(outcome.response_body, JsonBody):
            console.print(
                json.dumps(outcome.response_body.value, indent=2, default=str),
                markup=False,
            )
        else:
            console.print(outcome.response_body.value, markup=False)
    nl()

"""apiprobe CLI."""

import typer

from apiprobe.cli._console import console
from apiprobe.cli.analytics import analytics, logs
from apiprobe.cli.send import send

app = typer.Typer(
    name="apiprobe",
    help="Probe third-party APIs and summarize their usage.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        from apiprobe import __version__

        console.print(f"[bold]apiprobe[/bold] [dim]{__version__}[/dim]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version",
    ),
) -> None:
    """Probe third-party APIs and summarize their usage."""


# Register commands
app.command()(send)
app.command()(analytics)
app.command()(logs)

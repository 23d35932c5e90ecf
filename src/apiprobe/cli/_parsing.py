"""Argument parsing helpers shared by CLI commands."""

import typer

from apiprobe.cli._console import error


def parse_pairs(values: list[str] | None, *, option: str) -> list[tuple[str, str]]:
    """Parse repeated ``key=value`` options, keeping order and duplicates."""
    pairs: list[tuple[str, str]] = []
    for value in values or []:
        if "=" not in value:
            error(f"Invalid {option} value: {value} (expected key=value)")
            raise typer.Exit(1)
        key, item = value.split("=", 1)
        pairs.append((key.strip(), item))
    return pairs

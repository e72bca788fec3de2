"""Shared rich console for host-side diagnostics."""

from rich.console import Console

CONSOLE = Console(width=128)


def warn(message: str) -> None:
    CONSOLE.log(f"[yellow]Warning: {message}")

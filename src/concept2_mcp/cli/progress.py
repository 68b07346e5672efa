"""Progress indicators for CLI operations."""

from contextlib import contextmanager
from typing import Generator

from rich.console import Console
from rich.status import Status

# Shared console instance
console = Console()


@contextmanager
def oauth_progress(timeout_seconds: float) -> Generator[Status, None, None]:
    """Spinner shown while waiting for the browser redirect.

    Args:
        timeout_seconds: How long the listener waits before giving up

    Yields:
        Rich Status object
    """
    with console.status(
        f"[bold blue]Waiting for authorization in the browser (up to {timeout_seconds:g}s)...",
        spinner="dots",
    ) as status:
        yield status


@contextmanager
def api_spinner(message: str) -> Generator[Status, None, None]:
    """Spinner for API calls with unknown duration."""
    with console.status(f"[bold green]{message}", spinner="dots") as status:
        yield status


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")

"""User-facing console output.

Log records go through the ``nativebuild`` logger; messages the user must
see regardless of verbosity are printed here.
"""

from rich.console import Console

console = Console()
error_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_hint(message: str) -> None:
    """Print a follow-up hint to stderr."""
    error_console.print(f"[green]{message}[/green]")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_fail_info(message: str) -> None:
    """Print a failed check item."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str = "") -> None:
    """Print an informational message."""
    console.print(message)


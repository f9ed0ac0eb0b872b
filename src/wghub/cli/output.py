"""Console output helpers shared by the CLI commands."""

from rich.console import Console

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    "online": "green",
    "offline": "red",
    "pending": "yellow",
    "expired": "dim",
}


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_warning(message: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_success(message: str) -> None:
    console.print(f"[bold green]✓[/bold green] {message}")


def format_status(status: str | None) -> str:
    """Status with its color markup."""
    if not status:
        return "[dim]-[/dim]"
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def format_bytes(num: int | float | None) -> str:
    """Human readable byte count (1024 based)."""
    if num is None:
        return "-"
    value = float(num)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if abs(value) < 1024 or unit == "TiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TiB"

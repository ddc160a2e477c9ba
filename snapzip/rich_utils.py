"""
Rich formatting utilities for consistent terminal output.

"If it isn't on the screen, it didn't happen."
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

# Centralized console instances
console = Console()
err_console = Console(stderr=True)


class Colors:
    """Consistent color scheme for the application."""
    SUCCESS = "green"
    ERROR = "red"
    WARNING = "yellow"
    INFO = "cyan"
    MUTED = "dim"
    ARCHIVE_NAME = "bold blue"


def print_success(message: str, prefix: str = "✅") -> None:
    """Print a success message in green."""
    console.print(f"[{Colors.SUCCESS}]{prefix} {message}[/{Colors.SUCCESS}]")


def print_error(message: str, prefix: str = "❌") -> None:
    """Print an error message in red on stderr."""
    err_console.print(f"[{Colors.ERROR}]{prefix} {message}[/{Colors.ERROR}]")


def print_warning(message: str, prefix: str = "⚠️") -> None:
    """Print a warning message in yellow."""
    console.print(f"[{Colors.WARNING}]{prefix} {message}[/{Colors.WARNING}]")


def print_info(message: str, prefix: str = "ℹ️") -> None:
    """Print an info message in cyan."""
    console.print(f"[{Colors.INFO}]{prefix} {message}[/{Colors.INFO}]")


def print_verbose(message: str, enabled: bool) -> None:
    """Print a dimmed diagnostic line when verbose output is on."""
    if enabled:
        console.print(f"[{Colors.MUTED}]{message}[/{Colors.MUTED}]", highlight=False)


def print_header(title: str, subtitle: str | None = None) -> None:
    """Print a formatted header with optional subtitle."""
    text = Text()
    text.append(title, style="bold cyan")
    if subtitle:
        text.append(f"\n{subtitle}", style="dim")

    panel = Panel(text, border_style="cyan", padding=(0, 1))
    console.print(panel)


def create_data_table(title: str | None = None, show_lines: bool = False) -> Table:
    """Create a styled table for data display."""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold blue",
        border_style="blue",
        show_lines=show_lines,
    )
    return table


def format_archive_name(name: str) -> str:
    """Format an archive file name with consistent styling."""
    return f"[{Colors.ARCHIVE_NAME}]{name}[/{Colors.ARCHIVE_NAME}]"


def format_size(size_bytes: int | float) -> str:
    """
    Format a byte count as a human-readable string.

    Examples:
        512 -> "512 B"
        2048 -> "2.0 KB"
        5 * 1024 ** 3 -> "5.0 GB"
    """
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024 or unit == "TB":
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def print_key_value(key: str, value: str | int, key_width: int = 20) -> None:
    """Print a key-value pair with consistent formatting."""
    console.print(f"  [dim]{key:<{key_width}}:[/dim] {value}")

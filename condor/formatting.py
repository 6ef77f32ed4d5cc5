"""Rich-based console formatting utilities"""

from typing import TYPE_CHECKING, List

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from .pipeline import StageResult

console = Console()

def print_check(message: str) -> None:
    """Print a checkmark message in bold green."""
    text = Text("✓ ", style="bold green") + Text(message, style="bold")
    console.print(text)

def print_warning(message: str) -> None:
    """Print a warning message in bold yellow."""
    text = Text("⚠ ", style="bold yellow") + Text(message, style="bold")
    console.print(text)

def print_error(message: str) -> None:
    """Print an error message in bold red."""
    text = Text("✗ ", style="bold red") + Text(message, style="bold")
    console.print(text)

def print_success(message: str) -> None:
    """Print a success message in plain green."""
    text = Text("✓ ", style="green") + Text(message, style="green")
    console.print(text)

def print_header(title: str, width: int = 80) -> None:
    """Print a decorative header."""
    separator = Text("=" * width, style="bold blue")
    padding = (width - len(title)) // 2
    console.print(separator)
    console.print(" " * padding + title, style="bold blue")
    console.print(separator)

def print_info(message: str) -> None:
    """Print an informational message in a subtle style."""
    text = Text("ℹ ", style="bold blue") + Text(message, style="blue")
    console.print(text)

def build_summary_table(results: List["StageResult"]) -> Table:
    """Table with one row per stage: state, warning count and error"""
    table = Table(title="Stage summary")
    table.add_column("Stage", style="bold")
    table.add_column("State")
    table.add_column("Warnings", justify="right")
    table.add_column("Error", style="red")
    styles = {"completed": "green", "failed": "red", "cancelled": "yellow"}
    for result in results:
        state = result.state.value
        table.add_row(
            result.details.name,
            Text(state, style=styles.get(state, "")),
            str(len(result.warnings)),
            str(result.error) if result.error else "",
        )
    return table

def print_summary(results: List["StageResult"]) -> None:
    """Print the stage summary table."""
    console.print(build_summary_table(results))

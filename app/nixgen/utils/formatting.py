"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import shlex
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nixgen.core.theme import get_theme

if TYPE_CHECKING:
    from nixgen.models.generation import Generation


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_generation_table(title: str = "Generations") -> Table:
    """Create a pre-configured table for displaying generations.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for generation display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("", width=2, justify="center")
    table.add_column("Gen", justify="right", no_wrap=True)
    table.add_column("Date", style="muted", no_wrap=True)
    table.add_column("NixOS Version", style="text")
    table.add_column("Kernel", style="info")
    table.add_column("Specialisations", style="muted")
    table.add_column("Description", style="text", overflow="ellipsis")
    return table


def format_generation_row(generation: Generation) -> tuple[str, ...]:
    """Format a generation as a table row with proper styling.

    The current generation is marked with a filled circle, all others
    with an empty one.

    Args:
        generation: The generation to format.

    Returns:
        Tuple of cells matching :func:`create_generation_table`.
    """
    if generation.is_current:
        icon = "[generation_current]●[/]"
        number = f"[generation_current]{generation.number}[/]"
    else:
        icon = "[generation_other]○[/]"
        number = f"[generation_other]{generation.number}[/]"

    specialisations = ", ".join(generation.specialisations) or "-"

    return (
        icon,
        number,
        generation.display_date,
        escape(generation.nixos_version),
        escape(generation.kernel_version),
        escape(specialisations),
        escape(generation.description),
    )


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")


def print_step(message: str) -> None:
    """Print a pipeline step header."""
    err_console.print(f"[step]|>[/] [bold]{message}[/]")


def print_command(argv: list[str]) -> None:
    """Echo a command about to be executed."""
    err_console.print(f"[command]$ {escape(shlex.join(argv))}[/]")

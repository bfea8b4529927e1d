"""Shared utilities for CLI commands.

This module provides the helpers used across multiple CLI command
modules: settings loading, profile selection, confirmation and error
reporting.
"""

from typing import NoReturn

import typer

from nixgen.core.errors import NixgenError
from nixgen.core.settings import Settings, load_settings
from nixgen.utils.formatting import print_error


def fail(error: NixgenError) -> NoReturn:
    """Report an error and exit with its exit code.

    Args:
        error: The error to report.

    Raises:
        typer.Exit: Always.
    """
    print_error(str(error))
    raise typer.Exit(code=error.exit_code) from error


def get_settings() -> Settings:
    """Load settings, exiting on invalid files."""
    try:
        return load_settings()
    except NixgenError as e:
        fail(e)


def get_profile_name(ctx: typer.Context, settings: Settings) -> str:
    """Profile selected with the global ``--profile`` option, or the default.

    Args:
        ctx: Typer context carrying the global options.
        settings: Loaded settings.

    Returns:
        Profile name.
    """
    obj = ctx.obj or {}
    return obj.get("profile") or settings.generation.default_profile


def is_verbose(ctx: typer.Context) -> bool:
    """Check if the global ``--verbose`` option was given."""
    obj = ctx.obj or {}
    return bool(obj.get("verbose", False))


def confirm(message: str) -> bool:
    """Ask a yes/no question, defaulting to no."""
    return typer.confirm(message, default=False)

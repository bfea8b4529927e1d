"""CLI package for nixgen.

This package contains the Typer application and all subcommands.
"""

from nixgen.cli.main import app

__all__ = ["app"]

"""CLI commands for nixgen.

This package contains all subcommand implementations.
"""

from nixgen.cli.commands import apply, config, generation

__all__ = ["apply", "config", "generation"]

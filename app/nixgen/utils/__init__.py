"""Utility modules for nixgen.

This module exports commonly used utility functions.
"""

from nixgen.utils.formatting import (
    console,
    create_generation_table,
    err_console,
    print_command,
    print_error,
    print_info,
    print_step,
    print_success,
    print_warning,
)
from nixgen.utils.shell import CommandResult, command_exists, run_command, run_interactive

__all__ = [
    "CommandResult",
    "command_exists",
    "console",
    "create_generation_table",
    "err_console",
    "print_command",
    "print_error",
    "print_info",
    "print_step",
    "print_success",
    "print_warning",
    "run_command",
    "run_interactive",
]

"""Checked execution of external Nix commands.

Wraps the shell helpers so that a non-zero exit status surfaces as a
CommandFailedError carrying the child's exit code.
"""

import logging
import shlex

from nixgen.core.errors import CommandFailedError
from nixgen.utils.formatting import print_command
from nixgen.utils.shell import CommandResult, run_command, run_interactive

logger = logging.getLogger(__name__)

# Exit status reported by shells when a command is not found
EXIT_COMMAND_NOT_FOUND = 127


def execute(
    argv: list[str],
    *,
    verbose: bool = False,
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    capture_stdout: bool = False,
) -> CommandResult:
    """Run a command to completion, raising on failure.

    Args:
        argv: Command and arguments.
        verbose: Echo the command before running it.
        env: Additional environment variables.
        cwd: Working directory for the command.
        capture_stdout: Capture stdout (e.g. a build's output path) while
            stderr still reaches the terminal. Otherwise both streams are
            inherited.

    Returns:
        CommandResult; stdout is empty unless captured.

    Raises:
        CommandFailedError: If the command is missing or exits non-zero.
    """
    if verbose:
        print_command(argv)
    logger.debug("Running %s", shlex.join(argv))

    try:
        if capture_stdout:
            result = run_command(argv, timeout=None, cwd=cwd, env=env, stream_stderr=True)
        else:
            returncode = run_interactive(argv, cwd=cwd, env=env)
            result = CommandResult(stdout="", stderr="", returncode=returncode)
    except FileNotFoundError as e:
        msg = f"{argv[0]}: command not found"
        raise CommandFailedError(argv, EXIT_COMMAND_NOT_FOUND, msg) from e
    except OSError as e:
        raise CommandFailedError(argv, 1, str(e)) from e

    if not result.success:
        logger.debug("%s exited with status %d", argv[0], result.returncode)
        raise CommandFailedError(argv, result.returncode, result.stderr)

    return result

"""Closure diffs between two system configurations.

Shows which packages change between two closures using
``nix store diff-closures``, or ``nvd diff`` when configured. Diffs are
informational: a failure never stops the caller.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from nixgen.core.errors import CommandFailedError
from nixgen.core.runner import execute
from nixgen.utils.shell import command_exists

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DiffReport:
    """Result of a closure diff.

    Attributes:
        success: Whether the diff tool ran and exited successfully.
        returncode: Exit status of the diff tool (127 if it couldn't run).
        tool: Name of the tool that was used.
        message: Failure description, empty on success.
    """

    success: bool
    returncode: int
    tool: str
    message: str = ""


class DiffEngine:
    """Runs the closure diff tool.

    Attributes:
        use_nvd: Prefer ``nvd`` over ``nix store diff-closures``.
        verbose: Echo the diff command before running it.
    """

    def __init__(self, use_nvd: bool = False, verbose: bool = False) -> None:
        self.use_nvd = use_nvd
        self.verbose = verbose

    def command(self, before: Path | str, after: Path | str) -> list[str]:
        """Build the diff command line.

        Falls back to ``nix store diff-closures`` when nvd is configured
        but not installed.
        """
        if self.use_nvd:
            if command_exists("nvd"):
                return ["nvd", "diff", str(before), str(after)]
            logger.warning("use_nvd is set, but nvd is not executable")
            logger.warning("Falling back to 'nix store diff-closures'")
        return ["nix", "store", "diff-closures", str(before), str(after)]

    def diff(self, before: Path | str, after: Path | str) -> DiffReport:
        """Print the differences between two closures.

        The tool's output goes straight to the terminal.

        Args:
            before: The old closure.
            after: The new closure.

        Returns:
            DiffReport describing how the tool terminated.
        """
        argv = self.command(before, after)
        try:
            execute(argv, verbose=self.verbose)
        except CommandFailedError as e:
            logger.warning("Failed to diff closures: %s", e)
            return DiffReport(
                success=False,
                returncode=e.returncode,
                tool=argv[0],
                message=str(e),
            )
        return DiffReport(success=True, returncode=0, tool=argv[0])

"""Error hierarchy for nixgen.

Every error raised by the core carries the process exit code the CLI
should terminate with. Child-process failures keep the child's own exit
status instead of collapsing it to a generic code.
"""

from __future__ import annotations

# Exit codes shared by all commands
EXIT_FAILURE = 1
EXIT_VALIDATION = 2
EXIT_RESOURCE_ACCESS = 4
EXIT_PERMISSION_DENIED = 13


class NixgenError(Exception):
    """Base exception for all nixgen errors."""

    exit_code: int = EXIT_FAILURE


class ValidationError(NixgenError):
    """Raised for bad flags or conflicting parameters.

    Always raised before any side effect is attempted.
    """

    exit_code = EXIT_VALIDATION


class InvalidParameterError(ValidationError):
    """Raised when a deletion policy cannot be resolved."""


class ResourceAccessError(NixgenError):
    """Raised when a required file or directory cannot be read."""

    exit_code = EXIT_RESOURCE_ACCESS


class PermissionDeniedError(NixgenError):
    """Raised when access is denied or privilege escalation failed."""

    exit_code = EXIT_PERMISSION_DENIED


class ConfigurationError(NixgenError):
    """Raised when the NixOS configuration cannot be located or evaluated."""


class CommandFailedError(NixgenError):
    """Raised when an external command exits with a non-zero status.

    Attributes:
        argv: The command that was executed.
        returncode: Exit status of the child process.
        stderr: Captured standard error, if any.
    """

    def __init__(self, argv: list[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"'{' '.join(self.argv)}' exited with status {returncode}{detail}")

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        """Propagate the child's exit status when one is available."""
        return self.returncode if self.returncode > 0 else EXIT_FAILURE


class RollbackFailedError(NixgenError):
    """Raised when activation failed and restoring the profile failed too.

    The profile may point at an unverified generation; the operator must
    recover manually before deleting any generation.

    Attributes:
        original: The activation error that triggered the rollback.
        rollback_error: The error raised while rolling back.
        generation: Generation number the rollback tried to restore.
    """

    def __init__(
        self,
        original: BaseException,
        rollback_error: Exception,
        generation: int,
    ) -> None:
        self.original = original
        self.rollback_error = rollback_error
        self.generation = generation
        super().__init__(
            f"activation failed ({original}) and rolling the profile back to "
            f"generation {generation} also failed ({rollback_error}); "
            "manual recovery is required"
        )

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        """Report the exit status of the original activation failure."""
        return getattr(self.original, "exit_code", EXIT_FAILURE)

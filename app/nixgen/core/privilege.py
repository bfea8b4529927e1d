"""Privilege escalation.

Commands that modify a profile need root. When nixgen runs as a normal
user, it replaces itself with ``<root_command> <original argv>``.
"""

import logging
import os
import shutil
import sys

from nixgen.core.errors import PermissionDeniedError

logger = logging.getLogger(__name__)


def is_root() -> bool:
    """Check if the process runs with root privileges."""
    return os.geteuid() == 0


def ensure_root(root_command: str = "sudo", argv: list[str] | None = None) -> None:
    """Re-execute the current command as root if needed.

    Uses os.execvp() to replace the current process, so this only returns
    when the process already runs as root.

    Args:
        root_command: Privilege escalation command (sudo, doas, run0 ...).
        argv: Command line to re-execute. Default: sys.argv.

    Raises:
        PermissionDeniedError: If the root command is unavailable or the
            process cannot be replaced.
    """
    if is_root():
        return

    if shutil.which(root_command) is None:
        msg = f"Root privileges are required, but '{root_command}' is not executable"
        raise PermissionDeniedError(msg)

    command = [root_command, *(argv if argv is not None else sys.argv)]
    logger.debug("Re-executing as root: %s", " ".join(command))
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        os.execvp(root_command, command)
    except OSError as e:
        msg = f"Failed to re-execute as root with '{root_command}': {e}"
        raise PermissionDeniedError(msg) from e

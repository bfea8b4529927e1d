"""Generation deletion.

Executes a resolved retention policy: removes the selected generations
from the profile and regenerates the boot menu so it no longer lists
them.
"""

import logging
from pathlib import Path

from nixgen.core.paths import DEFAULT_PROFILE
from nixgen.core.profile import ProfileStore
from nixgen.core.runner import execute
from nixgen.core.specialisation import switch_to_configuration_path
from nixgen.models.activation import ActivationAction
from nixgen.models.deletion import Resolution

logger = logging.getLogger(__name__)


class DeletionExecutor:
    """Deletes generations from a profile.

    Attributes:
        store: Store of the profile to delete from.
        verbose: Echo the commands being executed.
    """

    def __init__(
        self,
        profile_name: str = DEFAULT_PROFILE,
        *,
        profile_dir: Path | None = None,
        verbose: bool = False,
    ) -> None:
        self.store = ProfileStore(profile_name, profile_dir)
        self.verbose = verbose

    def delete_command(self, resolution: Resolution) -> list[str]:
        """Build the ``nix-env --delete-generations`` command line."""
        return [
            "nix-env",
            "--profile",
            str(self.store.profile_path),
            "--delete-generations",
            *(str(n) for n in resolution.numbers),
        ]

    def execute(self, resolution: Resolution) -> None:
        """Delete the resolved generations.

        A resolution that deletes nothing is a no-op.

        Args:
            resolution: Output of the retention resolver.

        Raises:
            CommandFailedError: If deletion or boot menu regeneration fails.
        """
        if resolution.is_noop:
            logger.debug("Nothing to delete (%s)", resolution.status.value)
            return

        logger.info(
            "Deleting generations %s from profile %s",
            ", ".join(str(n) for n in resolution.numbers),
            self.store.profile_name,
        )
        execute(self.delete_command(resolution), verbose=self.verbose)

        self.regenerate_boot_menu()

    def regenerate_boot_menu(self) -> None:
        """Rewrite the boot entries from the profile's current generation.

        Raises:
            CommandFailedError: If ``switch-to-configuration boot`` fails.
        """
        script = switch_to_configuration_path(self.store.profile_path)
        execute([str(script), ActivationAction.BOOT.value], verbose=self.verbose)

"""Profile state reconstruction.

This module provides the ProfileStore class, which reads a Nix profile
directory and rebuilds the list of generations registered in it. It only
ever reads; generations are created by ``nix-env --set`` and removed by
``nix-env --delete-generations``.

A profile directory looks like::

    /nix/var/nix/profiles/
        system -> system-42-link
        system-41-link -> /nix/store/...-nixos-system-...
        system-42-link -> /nix/store/...-nixos-system-...
"""

from __future__ import annotations

import errno
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from nixgen.core.errors import PermissionDeniedError, ResourceAccessError
from nixgen.core.paths import DEFAULT_PROFILE, get_profile_directory
from nixgen.core.specialisation import collect_specialisations
from nixgen.models.generation import UNKNOWN, UNKNOWN_DATE, Generation, GenerationManifest

logger = logging.getLogger(__name__)

LINK_SUFFIX = "-link"


def parse_generation_link_name(name: str, profile_name: str) -> int | None:
    """Extract the generation number from a ``<profile>-<N>-link`` name.

    The prefix must equal the profile name exactly and the text between
    the prefix and ``-link`` must consist of digits only, so profiles that
    share a name prefix (``system`` and ``system-test``) never collide.

    Args:
        name: Directory entry name.
        profile_name: Profile the entry has to belong to.

    Returns:
        The generation number, or None if the entry belongs elsewhere.
    """
    prefix = f"{profile_name}-"
    if not name.startswith(prefix) or not name.endswith(LINK_SUFFIX):
        return None
    if len(name) <= len(prefix) + len(LINK_SUFFIX):
        return None

    digits = name[len(prefix) : -len(LINK_SUFFIX)]
    if not (digits.isascii() and digits.isdigit()):
        return None

    number = int(digits)
    return number if number > 0 else None


class ProfileStore:
    """Reads the generations of a single Nix profile.

    Attributes:
        profile_name: Name of the profile (default ``system``).
        profile_dir: Directory containing the profile's links.
    """

    def __init__(
        self,
        profile_name: str = DEFAULT_PROFILE,
        profile_dir: Path | None = None,
    ) -> None:
        """Initialize ProfileStore.

        Args:
            profile_name: Name of the profile.
            profile_dir: Optional override for the profile directory.
                Default: /nix/var/nix/profiles (or system-profiles/ for
                named profiles).
        """
        self.profile_name = profile_name
        self.profile_dir = (
            profile_dir if profile_dir is not None else get_profile_directory(profile_name)
        )

    @property
    def profile_path(self) -> Path:
        """Path of the profile symlink pointing at the current generation."""
        return self.profile_dir / self.profile_name

    def generation_link(self, number: int) -> Path:
        """Path of the link for a generation number.

        Args:
            number: Generation number.

        Returns:
            Path such as /nix/var/nix/profiles/system-42-link.
        """
        return self.profile_dir / f"{self.profile_name}-{number}{LINK_SUFFIX}"

    def gather_generations(self) -> list[Generation]:
        """Read every generation in the profile, ascending by number.

        Metadata that cannot be read degrades to placeholders. If the
        current generation cannot be determined, a warning is logged and
        no generation is marked current.

        Returns:
            List of Generation records.

        Raises:
            ResourceAccessError: If the profile directory cannot be listed.
            PermissionDeniedError: If listing the profile directory is denied.
        """
        try:
            names = os.listdir(self.profile_dir)
        except PermissionError as e:
            msg = f"Cannot read profile directory {self.profile_dir}: Permission denied"
            raise PermissionDeniedError(msg) from e
        except OSError as e:
            msg = f"Cannot read profile directory {self.profile_dir}: {e.strerror or e}"
            raise ResourceAccessError(msg) from e

        current_link = self._read_current_link_name()

        generations: list[Generation] = []
        for name in names:
            number = parse_generation_link_name(name, self.profile_name)
            if number is None:
                continue
            generations.append(self.read_generation(number, is_current=name == current_link))

        generations.sort(key=lambda g: g.number)

        if generations and not any(g.is_current for g in generations):
            logger.warning(
                "Unable to determine the current generation of profile %s",
                self.profile_name,
            )

        return generations

    def get_generation(self, number: int) -> Generation:
        """Read a single existing generation.

        Args:
            number: Generation number.

        Returns:
            The Generation record.

        Raises:
            ResourceAccessError: If the generation does not exist.
            PermissionDeniedError: If the generation cannot be accessed.
        """
        link = self.generation_link(number)
        try:
            link.resolve(strict=True)
        except PermissionError as e:
            msg = f"Cannot access generation {number} ({link}): Permission denied"
            raise PermissionDeniedError(msg) from e
        except (OSError, RuntimeError) as e:
            msg = f"Generation {number} does not exist in profile {self.profile_name} ({link})"
            raise ResourceAccessError(msg) from e

        return self.read_generation(number, is_current=self._read_current_link_name() == link.name)

    def current_generation_number(self) -> int:
        """Determine the generation the profile currently points at.

        Returns:
            The current generation number.

        Raises:
            ResourceAccessError: If the profile link is missing or malformed.
        """
        current_link = self._read_current_link_name()
        if current_link is None:
            msg = f"Unable to determine current generation of profile {self.profile_name}"
            raise ResourceAccessError(msg)

        number = parse_generation_link_name(current_link, self.profile_name)
        if number is None:
            msg = (
                f"Profile link {self.profile_path} points at '{current_link}', "
                f"which is not a generation of profile {self.profile_name}"
            )
            raise ResourceAccessError(msg)
        return number

    def read_generation(self, number: int, *, is_current: bool = False) -> Generation:
        """Reconstruct a generation's metadata from its closure.

        Args:
            number: Generation number.
            is_current: Whether the profile points at this generation.

        Returns:
            Generation with every unreadable field set to a placeholder.
        """
        link = self.generation_link(number)
        manifest = _read_manifest(link)

        nixos_version = manifest.nixos_version or _read_version_file(link) or UNKNOWN

        return Generation(
            number=number,
            creation_date=_read_creation_date(link),
            is_current=is_current,
            nixos_version=nixos_version,
            nixpkgs_revision=manifest.nixpkgs_revision or UNKNOWN,
            configuration_revision=manifest.configuration_revision or UNKNOWN,
            kernel_version=_read_kernel_version(link),
            description=manifest.description or UNKNOWN,
            specialisations=tuple(collect_specialisations(link)),
        )

    def _read_current_link_name(self) -> str | None:
        """Read the name of the link the profile symlink points at."""
        try:
            target = os.readlink(self.profile_path)
        except OSError as e:
            if e.errno != errno.ENOENT:
                logger.warning("Unable to read profile link %s: %s", self.profile_path, e)
            else:
                logger.debug("Profile link %s does not exist", self.profile_path)
            return None
        return Path(target).name


def _read_manifest(generation_dir: Path) -> GenerationManifest:
    """Parse ``nixos-version.json``, returning an empty manifest on failure."""
    manifest_path = generation_dir / "nixos-version.json"
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
        return GenerationManifest.model_validate(data)
    except FileNotFoundError:
        logger.debug("No version manifest at %s", manifest_path)
    except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
        logger.debug("Failed to read version manifest %s: %s", manifest_path, e)
    return GenerationManifest()


def _read_version_file(generation_dir: Path) -> str | None:
    """Read the plain-text ``nixos-version`` file."""
    version_path = generation_dir / "nixos-version"
    try:
        version = version_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.debug("Failed to read %s: %s", version_path, e)
        return None
    return version or None


def _read_kernel_version(generation_dir: Path) -> str:
    """Read the kernel version from the kernel modules directory."""
    modules_dir = generation_dir / "kernel-modules" / "lib" / "modules"
    try:
        versions = sorted(os.listdir(modules_dir))
    except OSError as e:
        logger.debug("Failed to list kernel modules in %s: %s", modules_dir, e)
        return UNKNOWN
    if not versions:
        logger.debug("No kernel modules version directory found in %s", modules_dir)
        return UNKNOWN
    return versions[0]


def _read_creation_date(link: Path) -> datetime:
    """Read when a generation link was created.

    Uses the birth time where the platform reports one, otherwise the
    link's change time.
    """
    try:
        st = os.lstat(link)
    except OSError as e:
        logger.debug("Failed to stat %s: %s", link, e)
        return UNKNOWN_DATE

    timestamp = getattr(st, "st_birthtime", None) or st.st_ctime
    return datetime.fromtimestamp(timestamp, tz=UTC)

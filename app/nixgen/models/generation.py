"""Generation models.

This module defines the data structures describing a NixOS generation as
reconstructed from a profile directory, together with the Pydantic model
for the ``nixos-version.json`` manifest stored inside each generation.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

# Placeholder for metadata that could not be read
UNKNOWN = "unknown"

# Placeholder creation date for generations whose timestamps are unreadable
UNKNOWN_DATE = datetime.fromtimestamp(0, tz=UTC)


class GenerationManifest(BaseModel):
    """Contents of ``<generation>/nixos-version.json``.

    Every field is optional; older generations only ship the plain
    ``nixos-version`` file.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    nixos_version: Annotated[str | None, Field(alias="nixosVersion")] = None
    nixpkgs_revision: Annotated[str | None, Field(alias="nixpkgsRevision")] = None
    configuration_revision: Annotated[str | None, Field(alias="configurationRevision")] = None
    description: Annotated[str | None, Field(alias="description")] = None


@dataclass(frozen=True, slots=True)
class Generation:
    """A numbered system configuration registered in a profile.

    Attributes:
        number: Generation number, unique within its profile.
        creation_date: When the generation link was created (best effort).
        is_current: Whether the profile currently points at this generation.
        nixos_version: NixOS release string.
        nixpkgs_revision: Nixpkgs revision the system was built from.
        configuration_revision: Revision of the user's configuration.
        kernel_version: Version of the kernel modules shipped.
        description: Free-text tag given at build time.
        specialisations: Specialisation names, sorted.
    """

    number: int
    creation_date: datetime = UNKNOWN_DATE
    is_current: bool = False
    nixos_version: str = UNKNOWN
    nixpkgs_revision: str = UNKNOWN
    configuration_revision: str = UNKNOWN
    kernel_version: str = UNKNOWN
    description: str = UNKNOWN
    specialisations: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate generation data after initialization."""
        if self.number < 1:
            msg = f"Generation number must be positive, got {self.number}"
            raise ValueError(msg)

    @property
    def has_creation_date(self) -> bool:
        """Check if the creation date could be determined."""
        return self.creation_date != UNKNOWN_DATE

    @property
    def display_date(self) -> str:
        """Creation date formatted for display, or ``(unknown)``."""
        if not self.has_creation_date:
            return f"({UNKNOWN})"
        return self.creation_date.astimezone().strftime("%Y-%m-%d %H:%M:%S")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output.

        Returns:
            Dictionary representation of the generation.
        """
        return {
            "number": self.number,
            "creation_date": self.creation_date.isoformat() if self.has_creation_date else None,
            "is_current": self.is_current,
            "nixos_version": self.nixos_version,
            "nixpkgs_revision": self.nixpkgs_revision,
            "configuration_revision": self.configuration_revision,
            "kernel_version": self.kernel_version,
            "description": self.description,
            "specialisations": list(self.specialisations),
        }


def find_current(generations: list[Generation]) -> Generation | None:
    """Return the generation marked as current, if any.

    Args:
        generations: Generations of a single profile.

    Returns:
        The current generation, or None when the profile link is unresolved.
    """
    for generation in generations:
        if generation.is_current:
            return generation
    return None

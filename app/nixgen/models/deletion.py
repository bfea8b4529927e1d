"""Deletion policy models.

This module defines the parameters of a generation deletion request and
the result of resolving it against a profile.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from nixgen.models.generation import Generation


@dataclass(frozen=True, slots=True)
class DeletionSpec:
    """Constraints selecting which generations to delete.

    The selectors combine as a union; ``keep``, ``min`` and the current
    generation then protect entries from removal.

    Attributes:
        all: Delete every generation except the current one.
        from_: Lower bound of an inclusive number range.
        to: Upper bound of an inclusive number range.
        older_than: Delete generations created before ``now - older_than``.
        keep: Generation numbers that must never be deleted.
        min: Minimum number of generations to keep in the profile.
        remove: Generation numbers explicitly requested for deletion.
    """

    all: bool = False
    from_: int | None = None
    to: int | None = None
    older_than: timedelta | None = None
    keep: frozenset[int] = field(default_factory=frozenset)
    min: int | None = None
    remove: frozenset[int] = field(default_factory=frozenset)

    @property
    def has_range(self) -> bool:
        """Check if a from/to range was given."""
        return self.from_ is not None or self.to is not None

    @property
    def has_selector(self) -> bool:
        """Check if any selector that adds generations was given."""
        return self.all or self.has_range or self.older_than is not None or bool(self.remove)


class ResolutionStatus(Enum):
    """Outcome of resolving a deletion policy.

    Attributes:
        RESOLVED: At least one generation will be deleted.
        NOTHING_TO_DELETE: The policy selected nothing deletable.
        MIN_EXCEEDS_TOTAL: The minimum to keep covers the whole profile.
    """

    RESOLVED = "resolved"
    NOTHING_TO_DELETE = "nothing_to_delete"
    MIN_EXCEEDS_TOTAL = "min_exceeds_total"


@dataclass(frozen=True, slots=True)
class Resolution:
    """Generations selected for deletion.

    Attributes:
        removals: Generations to delete, ascending by number.
        remaining: Number of generations left in the profile afterwards.
        status: Whether anything is to be deleted, and if not, why.
        ignored: Selectors that were ignored because ``all`` was given.
    """

    removals: tuple[Generation, ...]
    remaining: int
    status: ResolutionStatus = ResolutionStatus.RESOLVED
    ignored: tuple[str, ...] = ()

    @property
    def numbers(self) -> list[int]:
        """Generation numbers to delete, ascending."""
        return [g.number for g in self.removals]

    @property
    def is_noop(self) -> bool:
        """Check if the resolution deletes nothing."""
        return self.status != ResolutionStatus.RESOLVED

"""Retention policy resolution.

Maps a profile's generations and a DeletionSpec to the set of generations
to delete. Pure: no I/O, and deterministic for a fixed ``now``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from nixgen.core.errors import InvalidParameterError, ResourceAccessError
from nixgen.models.deletion import DeletionSpec, Resolution, ResolutionStatus
from nixgen.models.generation import Generation, find_current

logger = logging.getLogger(__name__)


def _ignored_selectors(spec: DeletionSpec) -> tuple[str, ...]:
    """Name the selectors that ``all`` overrides."""
    ignored: list[str] = []
    if spec.from_ is not None:
        ignored.append("from")
    if spec.to is not None:
        ignored.append("to")
    if spec.older_than is not None:
        ignored.append("older_than")
    if spec.remove:
        ignored.append("remove")
    return tuple(ignored)


def _validate(generations: list[Generation], spec: DeletionSpec, current: int | None) -> None:
    if not generations:
        raise InvalidParameterError("no generations found in profile")

    # Without a known current generation nothing is safe to delete
    if current is None:
        raise ResourceAccessError("Unable to determine the current generation of the profile")

    overlap = spec.remove & spec.keep
    if overlap:
        numbers = ", ".join(str(n) for n in sorted(overlap))
        raise InvalidParameterError(f"generations {numbers} are both kept and removed")

    if current in spec.remove:
        raise InvalidParameterError(f"cannot remove the current generation {current}")

    if spec.min is not None and spec.min < 0:
        raise InvalidParameterError("the minimum number of generations to keep must be positive")


def _select_range(generations: list[Generation], spec: DeletionSpec) -> set[int]:
    """Select every generation inside the inclusive ``[from, to]`` range."""
    lowest = generations[0].number
    highest = generations[-1].number
    lower = spec.from_ if spec.from_ is not None else lowest
    upper = spec.to if spec.to is not None else highest

    if lower > upper:
        raise InvalidParameterError(f"range start {lower} is greater than range end {upper}")
    if lower < lowest or upper > highest:
        raise InvalidParameterError(
            f"range {lower}-{upper} is outside the existing generations {lowest}-{highest}"
        )

    return {g.number for g in generations if lower <= g.number <= upper}


def resolve_removals(
    generations: list[Generation],
    spec: DeletionSpec,
    now: datetime | None = None,
) -> Resolution:
    """Resolve a deletion policy into the generations to delete.

    The selectors (``remove``, the ``from``/``to`` range and
    ``older_than``) are combined as a union. Kept generations and the
    current generation are then subtracted, and finally the
    highest-numbered candidates are restored until ``min`` generations
    would remain.

    Args:
        generations: Every generation in the profile.
        spec: The deletion policy.
        now: Reference time for ``older_than``. Default: current UTC time.

    Returns:
        Resolution listing the generations to delete.

    Raises:
        InvalidParameterError: If the policy is inconsistent with itself or
            with the profile.
        ResourceAccessError: If the current generation is unknown.
    """
    ordered = sorted(generations, key=lambda g: g.number)
    current_gen = find_current(ordered)
    current = current_gen.number if current_gen is not None else None

    _validate(ordered, spec, current)

    total = len(ordered)
    by_number = {g.number: g for g in ordered}
    ignored: tuple[str, ...] = ()

    if spec.all:
        ignored = _ignored_selectors(spec)
        if ignored:
            logger.warning(
                "Deleting all generations, ignoring %s",
                ", ".join(ignored),
            )
        candidates = set(by_number)
    else:
        missing = sorted(spec.remove - by_number.keys())
        if missing:
            numbers = ", ".join(str(n) for n in missing)
            raise InvalidParameterError(f"generations {numbers} do not exist")
        candidates = set(spec.remove)

        if spec.has_range:
            candidates |= _select_range(ordered, spec)

        if spec.older_than is not None:
            reference = now if now is not None else datetime.now(UTC)
            cutoff = reference - spec.older_than
            candidates |= {
                g.number for g in ordered if g.has_creation_date and g.creation_date < cutoff
            }

    candidates -= spec.keep
    candidates.discard(current)

    if spec.min:
        if spec.min >= total:
            logger.info(
                "Keeping at least %d generations, but the profile only has %d",
                spec.min,
                total,
            )
            return Resolution(
                removals=(),
                remaining=total,
                status=ResolutionStatus.MIN_EXCEEDS_TOTAL,
                ignored=ignored,
            )
        while candidates and total - len(candidates) < spec.min:
            candidates.discard(max(candidates))

    removals = tuple(by_number[n] for n in sorted(candidates))
    status = ResolutionStatus.RESOLVED if removals else ResolutionStatus.NOTHING_TO_DELETE
    return Resolution(
        removals=removals,
        remaining=total - len(removals),
        status=status,
        ignored=ignored,
    )

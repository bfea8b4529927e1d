"""systemd.time(7) span parsing.

Parses durations such as ``"30d 2h 1m"`` used by
``generation delete --older-than``.
"""

import re
from datetime import timedelta

# Unit spellings accepted by systemd.time(7), mapped to seconds. Months and
# years use the averaged lengths systemd uses (30.44 and 365.25 days).
_UNIT_SECONDS: dict[str, float] = {
    **dict.fromkeys(("ns", "nsec"), 1e-9),
    **dict.fromkeys(("us", "usec"), 1e-6),
    **dict.fromkeys(("ms", "msec"), 1e-3),
    **dict.fromkeys(("s", "sec", "second", "seconds"), 1),
    **dict.fromkeys(("m", "min", "minute", "minutes"), 60),
    **dict.fromkeys(("h", "hr", "hour", "hours"), 3600),
    **dict.fromkeys(("d", "day", "days"), 86400),
    **dict.fromkeys(("w", "week", "weeks"), 7 * 86400),
    **dict.fromkeys(("M", "month", "months"), 30.44 * 86400),
    **dict.fromkeys(("y", "year", "years"), 365.25 * 86400),
}

_COMPONENT = re.compile(r"(\d+)\s*([A-Za-z]*)")


class TimeSpanError(ValueError):
    """Raised when a time span string is malformed."""


def parse_timespan(value: str) -> timedelta:
    """Parse a systemd.time span into a timedelta.

    Components are ``<number><unit>`` pairs, optionally separated by
    whitespace; their values are summed.

    Args:
        value: Span such as ``"2weeks"`` or ``"1d 12h"``.

    Returns:
        The total duration.

    Raises:
        TimeSpanError: If the span is empty, has a component without a
            unit, or uses an unknown unit.
    """
    text = value.strip()
    if len(text) < 2:
        raise TimeSpanError(f"'{value}' is too short to be a time span")

    total = 0.0
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue

        match = _COMPONENT.match(text, pos)
        if match is None:
            raise TimeSpanError(f"invalid character '{text[pos]}' in time span '{value}'")

        number, unit = match.groups()
        if not unit:
            raise TimeSpanError(f"missing unit after '{number}' in time span '{value}'")
        if unit not in _UNIT_SECONDS:
            raise TimeSpanError(f"unknown unit '{unit}' in time span '{value}'")

        total += int(number) * _UNIT_SECONDS[unit]
        pos = match.end()

    return timedelta(seconds=total)

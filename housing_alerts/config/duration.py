"""Duration strings used for job intervals ("45m", "1h30m", "PT45M", "1d")."""

import re

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

_ISO_PATTERN = re.compile(
    r"^P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+(?:\.\d+)?)S)?)?$"
)
_HUMAN_PART = re.compile(r"(\d+)\s*([smhd])")


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""


def parse_duration(duration_str: str) -> int:
    """
    Convert a duration string to whole seconds.

    Accepts human-readable forms ("30s", "45m", "1h30m", "2d") and ISO-8601
    durations ("PT45M", "PT1H30M", "P1D"). Zero durations are rejected.

    Args:
        duration_str: Duration text

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the text is empty, malformed or zero

    Examples:
        >>> parse_duration("45m")
        2700
        >>> parse_duration("PT1H")
        3600
    """
    if not isinstance(duration_str, str) or not duration_str.strip():
        raise DurationParseError("Duration string cannot be empty")

    text = duration_str.strip()
    if text.upper().startswith("P"):
        seconds = _parse_iso(text.upper())
    else:
        seconds = _parse_human(text.lower())

    if seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")
    return seconds


def _parse_iso(text: str) -> int:
    match = _ISO_PATTERN.match(text)
    if not match or text in ("P", "PT"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration: '{text}'. Expected e.g. 'PT45M', 'PT1H30M' or 'P1D'"
        )

    parts = match.groupdict()
    total = 0
    for unit in ("d", "h", "m"):
        if parts[unit]:
            total += int(parts[unit]) * _UNIT_SECONDS[unit]
    if parts["s"]:
        total += int(float(parts["s"]))
    return total


def _parse_human(text: str) -> int:
    pieces = _HUMAN_PART.findall(text)
    if not pieces:
        raise DurationParseError(
            f"Invalid duration: '{text}'. Expected e.g. '30s', '45m', '1h30m' or '1d'"
        )

    # Reject leftovers such as "45 minutes" or "1h-30m".
    rebuilt = "".join(f"{number}{unit}" for number, unit in pieces)
    if rebuilt != re.sub(r"\s+", "", text):
        raise DurationParseError(
            f"Invalid characters in duration: '{text}'. Use digits followed by s, m, h or d"
        )

    return sum(int(number) * _UNIT_SECONDS[unit] for number, unit in pieces)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Duration",
) -> None:
    """
    Check that a parsed duration falls inside ``[min_seconds, max_seconds]``.

    Raises:
        DurationParseError: With a message naming ``label`` when out of range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {format_duration(duration_seconds)}. "
            f"Minimum is {format_duration(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {format_duration(duration_seconds)}. "
            f"Maximum is {format_duration(max_seconds)}."
        )


def format_duration(seconds: int) -> str:
    """Render seconds in the largest whole unit ("45 minutes", "1 day")."""
    for unit_seconds, name in ((86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds >= unit_seconds and seconds % unit_seconds == 0:
            count = seconds // unit_seconds
            return f"{count} {name}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"

"""
Duration helpers.
Delays and poll intervals are handled as timedelta internally and travel as
ISO 8601 duration strings in notification payloads, which PostgreSQL also
accepts as interval literals.
"""

import re
from datetime import timedelta
from typing import Any, Mapping, Union

DurationLike = Union[timedelta, int, float, str, Mapping[str, Any]]

_ISO_DURATION = re.compile(
    r"^P(?!$)"
    r"(?:(?P<weeks>\d+(?:\.\d+)?)W)?"
    r"(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?=\d)"
    r"(?:(?P<hours>\d+(?:\.\d+)?)H)?"
    r"(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?"
    r")?$"
)

_MICROSECONDS_PER_DAY = 86_400_000_000
_MICROSECONDS_PER_HOUR = 3_600_000_000
_MICROSECONDS_PER_MINUTE = 60_000_000
_MICROSECONDS_PER_SECOND = 1_000_000


def parse_duration(text: str) -> timedelta:
    """
    Parse an ISO 8601 duration such as ``PT3S`` or ``P1DT2H30M``.
    Years and months are rejected since their length is not fixed.

    :param text: The duration string.
    :returns: The parsed timedelta.
    :raises ValueError: If the string is not a supported ISO 8601 duration.
    """
    match = _ISO_DURATION.match(text.strip().upper())
    if match is None:
        raise ValueError(f"Invalid ISO 8601 duration: {text!r}")

    parts = {k: float(v) for k, v in match.groupdict().items() if v is not None}
    try:
        return timedelta(**parts)
    except OverflowError:
        raise ValueError(f"Duration out of range: {text!r}") from None


def format_duration(duration: timedelta) -> str:
    """
    Render a non-negative timedelta as an ISO 8601 duration.

    :param duration: The duration to render.
    :returns: A string like ``PT0S``, ``PT0.5S`` or ``P1DT2H``.
    :raises ValueError: If the duration is negative.
    """
    total = duration // timedelta(microseconds=1)
    if total < 0:
        raise ValueError(f"Duration must not be negative: {duration}")

    days, rest = divmod(total, _MICROSECONDS_PER_DAY)
    hours, rest = divmod(rest, _MICROSECONDS_PER_HOUR)
    minutes, rest = divmod(rest, _MICROSECONDS_PER_MINUTE)
    seconds, microseconds = divmod(rest, _MICROSECONDS_PER_SECOND)

    result = f"P{days}D" if days else "P"
    time_part = ""
    if hours:
        time_part += f"{hours}H"
    if minutes:
        time_part += f"{minutes}M"
    if microseconds:
        time_part += f"{seconds}.{microseconds:06d}".rstrip("0") + "S"
    elif seconds:
        time_part += f"{seconds}S"

    if time_part:
        result += "T" + time_part
    elif not days:
        result = "PT0S"
    return result


def to_timedelta(value: DurationLike) -> timedelta:
    """
    Convert a duration-like value to a non-negative timedelta.

    Accepted forms: a timedelta, a number of seconds, a mapping of timedelta
    keyword arguments (``{"seconds": 5}``) or an ISO 8601 duration string.

    :param value: The value to convert.
    :returns: The duration as timedelta.
    :raises ValueError: If the value cannot be converted or is negative.
    """
    if isinstance(value, timedelta):
        duration = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        try:
            duration = timedelta(seconds=value)
        except (OverflowError, ValueError):
            raise ValueError(f"Invalid duration: {value!r}") from None
    elif isinstance(value, str):
        duration = parse_duration(value)
    elif isinstance(value, Mapping):
        try:
            duration = timedelta(**value)
        except (TypeError, OverflowError, ValueError) as e:
            raise ValueError(f"Invalid duration: {value!r}") from e
    else:
        raise ValueError(f"Invalid duration: {value!r}")

    if duration < timedelta(0):
        raise ValueError(f"Duration must not be negative: {value!r}")
    return duration

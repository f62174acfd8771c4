"""
Parsing of the two textual time encodings found in instrument exports.

- Absolute timestamps: ``DD/MM/YYYY HH:MM[:SS[.s]]`` (time-series rows,
  spectroscopy filenames once their underscores are mapped back).
- Durations: ``HH:MM:SS[.s]`` or ``MM:SS[.s]`` (baseline time setting).

Neither parser raises; failure is reported through ``None`` / NaN.
"""
import logging
import math
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


def fraction_to_milliseconds(fraction: str) -> int:
    """Right-pad (or truncate) a fractional-seconds string to 3 digits."""
    if not fraction:
        return 0
    return int(fraction.ljust(3, '0')[:3])


def build_timestamp(day: str, month: str, year: str,
                    hours: str, minutes: str, seconds: str = '') -> Optional[datetime]:
    """Assemble a naive datetime from text components, or None if invalid."""
    try:
        sec_text, _, frac = seconds.partition('.')
        sec = int(sec_text) if sec_text else 0
        ms = fraction_to_milliseconds(frac)
        return datetime(int(year), int(month), int(day),
                        int(hours), int(minutes), sec, ms * 1000)
    except (ValueError, OverflowError):
        return None


def parse_absolute_timestamp(text) -> Optional[datetime]:
    """Parse ``DD/MM/YYYY HH:MM[:SS[.s]]`` into a naive datetime.

    Returns None when the text does not split into a date and a time part,
    the date into three components, the time into two or three components,
    or when any component is not numeric.
    """
    if not isinstance(text, str) or not text:
        logger.debug(f"Invalid timestamp input: {text!r}")
        return None

    parts = text.strip().split(' ')
    if len(parts) != 2:
        logger.debug(f"Timestamp needs a date and a time separated by a space: {text!r}")
        return None

    date_parts = parts[0].split('/')
    if len(date_parts) != 3:
        logger.debug(f"Date part is not DD/MM/YYYY: {parts[0]!r}")
        return None

    time_parts = parts[1].split(':')
    if len(time_parts) not in (2, 3):
        logger.debug(f"Time part is not HH:MM[:SS[.s]]: {parts[1]!r}")
        return None

    seconds = time_parts[2] if len(time_parts) == 3 else ''
    day, month, year = date_parts
    return build_timestamp(day, month, year, time_parts[0], time_parts[1], seconds)


def parse_duration_string(text) -> float:
    """Convert ``HH:MM:SS[.s]`` or ``MM:SS[.s]`` to total minutes.

    Any other shape, or a non-numeric component, yields NaN.
    """
    if not isinstance(text, str) or not text:
        return math.nan

    parts = text.strip().split(':')
    try:
        if len(parts) == 3:
            return int(parts[0]) * 60 + int(parts[1]) + float(parts[2]) / 60
        if len(parts) == 2:
            return int(parts[0]) + float(parts[1]) / 60
    except ValueError:
        logger.debug(f"Could not parse duration: {text!r}")
        return math.nan
    return math.nan


def elapsed_seconds(start: Optional[datetime], end: Optional[datetime]) -> float:
    """Seconds from ``start`` to ``end``; NaN if either is missing."""
    if start is None or end is None:
        return math.nan
    return (end - start).total_seconds()

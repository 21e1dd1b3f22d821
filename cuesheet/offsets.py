"""
Offset codec.

Offsets are elapsed time from the start of a broadcast, written as the
fixed-width string HH:MM:SS.mmm.  Hours are two digits on input but may grow
wider on output; minutes and seconds are 00-59 and milliseconds 000-999.
"""

from __future__ import annotations

import re
from typing import Any

OFFSET_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2})\.(\d{3})$")

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


def pad(num: int, width: int = 2) -> str:
    return str(num).zfill(width)


def _match(text: Any) -> re.Match | None:
    if not isinstance(text, str):
        return None
    return OFFSET_RE.match(text)


def parse_offset(text: Any) -> int | None:
    """
    Convert an offset string to milliseconds.

    Returns None when the text does not match DD:DD:DD.DDD exactly.  Minutes
    and seconds are not range-checked here; see is_valid_offset_format().
    """
    match = _match(text)
    if match is None:
        return None
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return ((hours * 60 + minutes) * 60 + seconds) * MS_PER_SECOND + millis


def is_valid_offset_format(text: Any) -> bool:
    match = _match(text)
    if match is None:
        return False
    minutes = int(match.group(2))
    seconds = int(match.group(3))
    return minutes <= 59 and seconds <= 59


def format_offset(ms: int) -> str:
    hours, remainder = divmod(int(ms), MS_PER_HOUR)
    minutes, remainder = divmod(remainder, MS_PER_MINUTE)
    seconds, millis = divmod(remainder, MS_PER_SECOND)
    return build_offset(hours, minutes, seconds, millis)


def build_offset(hours: int, minutes: int, seconds: int, milliseconds: int) -> str:
    return f"{pad(hours)}:{pad(minutes)}:{pad(seconds)}.{pad(milliseconds, 3)}"


def sort_key(text: Any) -> int:
    # Unparseable offsets sort as zero.
    return parse_offset(text) or 0

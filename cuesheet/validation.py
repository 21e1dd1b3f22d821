"""
Row validation rules.

Per the playout CSV requirements:
  - Required: offset, media_type, title, artist (artist only for music/talk)
  - Optional: album, year

Every field is checked independently, so one call can report several errors
for the same row.  Within a single field the first failing check wins.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from cuesheet.errors import build_error, tag_error
from cuesheet.models import (
    ARTIST_REQUIRED_TYPES,
    MAX_FIELD_LENGTH,
    MAX_YEAR,
    MEDIA_TYPES,
    MIN_YEAR,
    Row,
    is_empty,
)
from cuesheet.offsets import is_valid_offset_format

YEAR_RE = re.compile(r"^\d{4}$")
LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

TIME_COMPONENT_LIMITS = {
    "hours": (0, 99),
    "minutes": (0, 59),
    "seconds": (0, 59),
    "milliseconds": (0, 999),
}


def clamp(num: int, low: int, high: int) -> int:
    return min(max(num, low), high)


def leading_int(value: Any) -> int:
    """Integer prefix of a typed value ("12.5" and "12abc" give 12); 0 when there is none."""
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return 0
    match = LEADING_INT_RE.match("" if value is None else str(value))
    return int(match.group(1)) if match else 0


def validate_time_component(value: Any, kind: str) -> int:
    """Clamp one offset component typed into the form or grid spinners."""
    num = leading_int(value)
    limits = TIME_COMPONENT_LIMITS.get(kind)
    if limits is None:
        return num
    return clamp(num, *limits)


def find_duplicate_offset(offset: str, exclude_id: str | None, all_rows: Sequence[Row]) -> dict | None:
    for index, other in enumerate(all_rows):
        if other.id != exclude_id and other.offset == offset:
            return {"row_id": other.id, "row_num": index + 1}
    return None


def validate_offset(offset: Any, row_id: str | None, all_rows: Sequence[Row] = ()) -> list[dict]:
    if is_empty(offset):
        return [build_error(field="offset", message="Offset is required", kind="required")]

    if not is_valid_offset_format(offset):
        return [
            build_error(
                field="offset",
                message="Offset must be in HH:MM:SS.mmm format (e.g., 00:03:45.000)",
                kind="format",
            )
        ]

    duplicate = find_duplicate_offset(offset, row_id, all_rows)
    if duplicate:
        return [
            build_error(
                field="offset",
                message=f"Offset {offset} is already used in row {duplicate['row_num']}",
                kind="duplicate",
                details=duplicate,
            )
        ]
    return []


def normalize_media_type(media_type: Any) -> str | None:
    if is_empty(media_type):
        return None
    normalized = str(media_type).strip().lower()
    return normalized if normalized in MEDIA_TYPES else None


def validate_media_type(media_type: Any) -> list[dict]:
    if is_empty(media_type):
        return [build_error(field="media_type", message="Media type is required", kind="required")]
    if normalize_media_type(media_type) is None:
        return [
            build_error(
                field="media_type",
                message=f"Media type must be one of: {', '.join(MEDIA_TYPES)}",
                kind="format",
            )
        ]
    return []


def _length_error(field: str, display_name: str) -> dict:
    return build_error(
        field=field,
        message=f"{display_name} must be {MAX_FIELD_LENGTH} characters or less",
        kind="length",
    )


def validate_required_field(value: Any, field: str, display_name: str) -> list[dict]:
    if is_empty(value):
        return [build_error(field=field, message=f"{display_name} is required", kind="required")]
    if len(value) > MAX_FIELD_LENGTH:
        return [_length_error(field, display_name)]
    return []


def validate_optional_field(value: Any, field: str, display_name: str) -> list[dict]:
    if is_empty(value):
        return []
    if len(value) > MAX_FIELD_LENGTH:
        return [_length_error(field, display_name)]
    return []


def validate_year(year: Any) -> list[dict]:
    if is_empty(year):
        return []
    if not isinstance(year, str) or not YEAR_RE.match(year):
        return [build_error(field="year", message="Year must be a 4-digit number", kind="format")]
    if not MIN_YEAR <= int(year) <= MAX_YEAR:
        return [
            build_error(
                field="year",
                message=f"Year must be between {MIN_YEAR} and {MAX_YEAR}",
                kind="range",
            )
        ]
    return []


def validate_row(row: Row, all_rows: Sequence[Row] = ()) -> list[dict]:
    errors: list[dict] = []
    errors.extend(validate_offset(row.offset, row.id, all_rows))
    errors.extend(validate_media_type(row.media_type))
    errors.extend(validate_required_field(row.title, "title", "Title"))

    media_type = (row.media_type or "").strip().lower()
    if media_type in ARTIST_REQUIRED_TYPES:
        errors.extend(validate_required_field(row.artist, "artist", "Artist"))
    else:
        errors.extend(validate_optional_field(row.artist, "artist", "Artist"))

    errors.extend(validate_optional_field(row.album, "album", "Album"))
    errors.extend(validate_year(row.year))
    return errors


def validate_all_rows(rows: Sequence[Row]) -> dict[str, Any]:
    all_errors: list[dict] = []
    for index, row in enumerate(rows, start=1):
        for error in validate_row(row, rows):
            all_errors.append(tag_error(error, row_id=row.id, row_num=index))
    return {"valid": not all_errors, "errors": all_errors}


def has_errors(row: Row, all_rows: Sequence[Row] = ()) -> bool:
    return bool(validate_row(row, all_rows))


def get_field_errors(row: Row, all_rows: Sequence[Row] = ()) -> dict[str, str]:
    field_errors: dict[str, str] = {}
    for error in validate_row(row, all_rows):
        field_errors.setdefault(error["field"], error["message"])
    return field_errors

"""
Column mapper.

Proposes which source column feeds each canonical cue sheet field.  Matching
is an ordered rule table: the exact pass runs to completion before the partial
pass, and inside each pass the first header (in file order) that matches wins.
"""

from __future__ import annotations

from typing import Any, Optional

from cuesheet.models import FIELDS, Row, generate_id
from cuesheet.validation import normalize_media_type

EXACT_ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("offset", ("offset", "time", "timestamp", "start", "start_time", "timecode", "position", "duration", "length")),
    ("media_type", ("media_type", "mediatype", "type", "category", "kind", "content_type", "media")),
    ("title", ("title", "song", "track", "song_title", "track_title", "name", "track_name", "song_name")),
    ("artist", ("artist", "performer", "band", "singer", "by", "artist_name", "contributing artist", "contributing_artist")),
    ("album", ("album", "album_title", "record", "release", "album_name", "cd")),
    ("year", ("year", "release_year", "date", "released", "release_date", "yr")),
)

# Fallback: matches when the header contains any of these.
PARTIAL_ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("offset", ("time", "offset", "duration")),
    ("media_type", ("type", "media", "category")),
    ("title", ("title", "song", "track", "name")),
    ("artist", ("artist", "performer", "singer")),
    ("album", ("album", "record", "release")),
    ("year", ("year", "date")),
)

EXPORT_REQUIRED_FIELDS = ["offset", "media_type", "title", "artist", "album"]
IMPORT_REQUIRED_FIELDS = ["title"]

MAPPING_FIELDS = [
    {"key": "offset", "label": "Offset", "required": False, "note": "required for export"},
    {"key": "media_type", "label": "Media Type", "required": False, "note": "defaults to music"},
    {"key": "title", "label": "Title", "required": True, "note": None},
    {"key": "artist", "label": "Artist", "required": False, "note": "required for export"},
    {"key": "album", "label": "Album", "required": False, "note": "required for export"},
    {"key": "year", "label": "Year", "required": False, "note": None},
]


def normalize_header(header: Any) -> str:
    if header is None:
        return ""
    return str(header).strip().lower()


def empty_mapping() -> dict[str, Optional[str]]:
    return {field: None for field in FIELDS}


def auto_map(headers: list[str]) -> dict[str, Optional[str]]:
    mapping = empty_mapping()
    normalized = [normalize_header(header) for header in headers]

    for field, aliases in EXACT_ALIASES:
        for index, header in enumerate(normalized):
            if header in aliases:
                mapping[field] = headers[index]
                break

    for field, aliases in PARTIAL_ALIASES:
        if mapping[field]:
            continue
        for index, header in enumerate(normalized):
            if headers[index] in mapping.values():
                continue
            if any(alias in header for alias in aliases):
                mapping[field] = headers[index]
                break

    return mapping


def _check_required(mapping: dict[str, Optional[str]], required: list[str]) -> dict[str, Any]:
    missing = [field for field in required if not mapping.get(field)]
    return {"complete": not missing, "missing": missing}


def check_mapping_complete(mapping: dict[str, Optional[str]]) -> dict[str, Any]:
    """Export-ready: every field except year is mapped."""
    return _check_required(mapping, EXPORT_REQUIRED_FIELDS)


def check_import_mapping_complete(mapping: dict[str, Optional[str]]) -> dict[str, Any]:
    """Import-minimum: only title; the rest can be filled in after import."""
    return _check_required(mapping, IMPORT_REQUIRED_FIELDS)


def apply_mapping(table: dict[str, list], mapping: dict[str, Optional[str]]) -> list[Row]:
    header_index: dict[str, int] = {}
    for index, header in enumerate(table["headers"]):
        # Later duplicates win, matching a plain dict build from the header row.
        header_index[normalize_header(header)] = index

    column_for_field: dict[str, int] = {}
    for field, source in mapping.items():
        if field not in FIELDS or not source:
            continue
        index = header_index.get(normalize_header(source))
        if index is not None:
            column_for_field[field] = index

    rows: list[Row] = []
    for raw in table["rows"]:
        row = Row(id=generate_id())
        for field, index in column_for_field.items():
            if index >= len(raw):
                continue
            value = str(raw[index]).strip()
            if field == "media_type":
                value = normalize_media_type(value) or value
            setattr(row, field, value)
        rows.append(row)
    return rows

"""
csv_codec.py — cue sheet CSV reader and writer

Reading accepts any comma-delimited RFC 4180-style text and returns a parsed
table; writing always produces the playout dialect:

    offset,media_type,title,artist,album,year

with CRLF line endings, rows sorted by offset, and no trailing newline.

Public API:
    table = parse(text)          # {"headers": [...], "rows": [[...], ...]}
    text  = serialize(rows)      # rows are cuesheet.models.Row
"""

from __future__ import annotations

from typing import Iterable, Optional

from cuesheet.models import Row
from cuesheet.offsets import sort_key

CSV_COLUMNS = ["offset", "media_type", "title", "artist", "album", "year"]
CSV_HEADER = ",".join(CSV_COLUMNS)
LINE_TERMINATOR = "\r\n"

_NEEDS_QUOTING = (",", '"', "\r", "\n")


# ══════════════════════════════════════════════════════════════════════════════
# READING
# ══════════════════════════════════════════════════════════════════════════════

def parse_lines(text: str) -> list[list[str]]:
    """
    Split CSV text into rows of fields in a single pass.

    Quoted fields may contain commas and raw newlines; a doubled quote inside
    a quoted field is a literal quote.  A file without a trailing newline
    still yields its last row.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    lines: list[list[str]] = []
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if in_quotes:
            if char == '"':
                if i + 1 < length and text[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == '"':
            in_quotes = True
        elif char == ",":
            fields.append("".join(current))
            current = []
        elif char == "\n":
            fields.append("".join(current))
            lines.append(fields)
            fields = []
            current = []
        else:
            current.append(char)
        i += 1

    if current or fields:
        fields.append("".join(current))
        lines.append(fields)

    return lines


def parse(text: Optional[str]) -> dict[str, list]:
    """Parse CSV text into headers plus non-blank data rows."""
    result: dict[str, list] = {"headers": [], "rows": []}
    if not text or not text.strip():
        return result

    lines = parse_lines(text)
    if not lines:
        return result

    result["headers"] = lines[0]
    result["rows"] = [
        line for line in lines[1:]
        if line and any(cell.strip() for cell in line)
    ]
    return result


# ══════════════════════════════════════════════════════════════════════════════
# WRITING
# ══════════════════════════════════════════════════════════════════════════════

def escape_field(value: Optional[str]) -> str:
    if not value:
        return ""
    if any(token in value for token in _NEEDS_QUOTING):
        return '"' + value.replace('"', '""') + '"'
    return value


def sort_rows(rows: Iterable[Row]) -> list[Row]:
    return sorted(rows, key=lambda row: sort_key(row.offset))


def serialize_row(row: Row) -> str:
    fields = [
        row.offset or "",
        (row.media_type or "").lower(),
        escape_field(row.title),
        escape_field(row.artist),
        escape_field(row.album),
        row.year or "",
    ]
    return ",".join(fields)


def serialize(rows: Iterable[Row]) -> str:
    lines = [CSV_HEADER]
    lines.extend(serialize_row(row) for row in sort_rows(rows))
    return LINE_TERMINATOR.join(lines)

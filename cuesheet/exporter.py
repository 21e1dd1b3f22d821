"""Export gate, file naming, and byte-exact CSV output."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Any, Sequence

from cuesheet.csv_codec import serialize
from cuesheet.models import Row
from cuesheet.validation import validate_all_rows

DEFAULT_FILE_STEM = "cue-sheet"
INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*]')
WHITESPACE_RE = re.compile(r"\s+")
DASH_RUN_RE = re.compile(r"-+")


def sanitize_filename(name: str) -> str:
    cleaned = INVALID_FILENAME_CHARS_RE.sub("-", name)
    cleaned = WHITESPACE_RE.sub("-", cleaned)
    cleaned = DASH_RUN_RE.sub("-", cleaned)
    return cleaned.strip()


def ensure_csv_extension(name: str) -> str:
    if not name.lower().endswith(".csv"):
        return name + ".csv"
    return name


def export_filename(name: str | None) -> str:
    return ensure_csv_extension(sanitize_filename(name or "") or DEFAULT_FILE_STEM)


def default_session_name(today: date | None = None) -> str:
    today = today or date.today()
    return f"{DEFAULT_FILE_STEM}-{today.isoformat()}"


def encode_csv(text: str) -> bytes:
    # The playout importer reads a BOM as part of the first header, so never emit one.
    return text.encode("utf-8")


def prepare_export(rows: Sequence[Row], file_name: str | None = None) -> dict[str, Any]:
    """
    Decide whether rows can be exported.

    status is "no_data" when there is nothing to export (validation is not
    run), "invalid" when any row fails validation, and "ok" otherwise.
    """
    if not rows:
        return {"status": "no_data", "message": "No data to export. Add rows first."}

    validation = validate_all_rows(rows)
    if not validation["valid"]:
        count = len(validation["errors"])
        return {
            "status": "invalid",
            "message": f"Cannot export: {count} error(s) found. Correct errors before exporting.",
            "errors": validation["errors"],
        }

    return {
        "status": "ok",
        "filename": export_filename(file_name),
        "content": serialize(rows),
        "row_count": len(rows),
    }


def write_export(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_csv(text))

"""
Shared cue sheet error taxonomy.

Validation problems are returned as plain dict records built by build_error()
so the grid, the web editor, and the CLI all render the same shape.  Only
file-level failures are raised, as CueSheetError subclasses.
"""

from __future__ import annotations

from typing import Any

ERROR_KINDS = {
    "format": {"description": "Value does not match the required pattern (offset HH:MM:SS.mmm, 4-digit year, media type)."},
    "range": {"description": "Numeric value is outside its allowed range."},
    "required": {"description": "A required field is empty."},
    "duplicate": {"description": "Another row already uses the same offset."},
    "length": {"description": "Free text is longer than the allowed maximum."},
}


class CueSheetError(Exception):
    """Base class for failures that cross the import boundary."""


class FileTypeError(CueSheetError):
    def __init__(self, suffix: str, supported: list[str]) -> None:
        self.suffix = suffix
        self.supported = supported
        super().__init__(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(supported)}"
        )


class FileReadError(CueSheetError):
    """I/O failure, or a file whose content is corrupt, encrypted, or unsupported."""


class MappingIncompleteError(CueSheetError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Required fields not mapped: {', '.join(self.missing)}")


def build_error(
    *,
    field: str,
    message: str,
    kind: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    if kind not in ERROR_KINDS:
        raise KeyError(f"Unknown error kind: {kind}")
    error = {"field": field, "message": message, "kind": kind}
    if details:
        error["details"] = details
    return error


def tag_error(error: dict[str, Any], *, row_id: str, row_num: int) -> dict[str, Any]:
    return {**error, "row_id": row_id, "row_num": row_num}

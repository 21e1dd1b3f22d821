"""Shared versioned contracts for cue-sheet CLI outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from cuesheet.models import MEDIA_TYPES, Row
from cuesheet.offsets import format_offset, parse_offset

CONTRACT_VERSIONS = {
    "cuesheet.mapping": "1.0.0",
    "cuesheet.import_summary": "1.1.0",
    "cuesheet.validation": "1.0.0",
    "cuesheet.export_summary": "1.1.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    return {"name": name, "version": CONTRACT_VERSIONS[name]}


def summarize_rows(rows: Sequence[Row]) -> dict[str, Any]:
    """Per-media-type counts plus the latest parseable cue point."""
    counts = {media_type: 0 for media_type in MEDIA_TYPES}
    other = 0
    latest: int | None = None
    for row in rows:
        media_type = (row.media_type or "").strip().lower()
        if media_type in counts:
            counts[media_type] += 1
        else:
            other += 1
        ms = parse_offset(row.offset)
        if ms is not None and (latest is None or ms > latest):
            latest = ms
    if other:
        counts["other"] = other
    return {
        "row_count": len(rows),
        "media_types": counts,
        "last_offset": format_offset(latest) if latest is not None else None,
    }


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_path: Path,
    session_name: str,
    rows: Sequence[Row] = (),
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "session_name": session_name,
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "cue_sheet": summarize_rows(rows),
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }

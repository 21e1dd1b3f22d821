"""pandas bridge between Row lists and the editor grid."""

from __future__ import annotations

from typing import Any, Sequence

import pandas as pd

from cuesheet.models import FIELDS, Row, generate_id, row_from_data

FRAME_COLUMNS = ["id", *FIELDS]
ERROR_COLUMNS = ["row_num", "field", "kind", "message"]


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def rows_to_frame(rows: Sequence[Row]) -> pd.DataFrame:
    records = [row.to_dict() for row in rows]
    return pd.DataFrame(records, columns=FRAME_COLUMNS).astype(str)


def frame_to_rows(frame: pd.DataFrame) -> list[Row]:
    """
    Read grid contents back into Rows.

    Rows added in the grid arrive without an id and get a fresh one; rows the
    user blanked out completely are dropped.
    """
    rows: list[Row] = []
    for record in frame.to_dict(orient="records"):
        data = {name: cell_text(record.get(name)) for name in FIELDS}
        if not any(value.strip() for value in data.values()):
            continue
        data["id"] = cell_text(record.get("id")) or generate_id()
        rows.append(row_from_data(data))
    return rows


def errors_to_frame(errors: Sequence[dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(
        [{column: error.get(column, "") for column in ERROR_COLUMNS} for error in errors],
        columns=ERROR_COLUMNS,
    )


def table_to_frame(table: dict[str, list], limit: int | None = None) -> pd.DataFrame:
    """Preview a parsed table; duplicate headers are suffixed so pandas keeps them."""
    headers: list[str] = []
    seen: dict[str, int] = {}
    for header in table["headers"]:
        count = seen.get(header, 0)
        seen[header] = count + 1
        headers.append(header if count == 0 else f"{header} ({count + 1})")

    rows = table["rows"] if limit is None else table["rows"][:limit]
    width = len(headers)
    padded = [list(row[:width]) + [""] * (width - len(row)) for row in rows]
    return pd.DataFrame(padded, columns=headers)

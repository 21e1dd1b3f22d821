"""
Spreadsheet adapter.

Turns the first worksheet of an .xlsx workbook into the same parsed-table
shape that csv_codec.parse() returns, so imports from either format go
through one mapping path.

Spreadsheets store time-of-day as a fraction of a 24-hour day.  Columns whose
sampled values are mostly such fractions are converted to HH:MM:SS.mmm
offsets before mapping.
"""

from __future__ import annotations

import io
import math
import zipfile
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, BinaryIO, Union

from cuesheet.errors import FileReadError
from cuesheet.offsets import MS_PER_DAY, format_offset

TIME_SAMPLE_ROWS = 10
TIME_COLUMN_RATIO = 0.8
TIME_HEADER_HINTS = ("time", "offset", "duration")
PLACEHOLDER_PREFIX = "Column "

OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

XlsxSource = Union[str, Path, bytes, BinaryIO]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_day_fraction(value: Any) -> bool:
    return is_number(value) and 0 <= value < 1


def is_blank_cell(value: Any) -> bool:
    return value is None or value == ""


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    return str(value).strip()


def excel_time_to_offset(fraction: float) -> str:
    # Round to whole milliseconds first so 0.999... never formats as ".1000".
    total_ms = int(math.floor(fraction * MS_PER_DAY + 0.5))
    return format_offset(total_ms)


def detect_time_columns(rows: list[list[Any]], headers: list[str]) -> set[int]:
    time_columns: set[int] = set()
    sample = rows[:TIME_SAMPLE_ROWS]

    for col_index in range(len(headers)):
        numeric_time_count = 0
        total_values = 0
        for row in sample:
            if col_index >= len(row):
                continue
            value = row[col_index]
            if is_blank_cell(value):
                continue
            total_values += 1
            if is_day_fraction(value):
                numeric_time_count += 1

        if total_values and numeric_time_count / total_values >= TIME_COLUMN_RATIO:
            time_columns.add(col_index)

    return time_columns


def table_from_cells(cells: list[list[Any]]) -> dict[str, list]:
    """Build {"headers", "rows"} from a raw 2D array of spreadsheet cell values."""
    if not cells:
        return {"headers": [], "rows": []}

    headers = [
        to_text(value) or f"{PLACEHOLDER_PREFIX}{index + 1}"
        for index, value in enumerate(cells[0])
    ]
    data_rows = [
        list(row) for row in cells[1:]
        if any(not is_blank_cell(cell) for cell in row)
    ]
    time_columns = detect_time_columns(data_rows, headers)

    string_rows: list[list[str]] = []
    for row in data_rows:
        values: list[str] = []
        for index in range(len(headers)):
            value = row[index] if index < len(row) else None
            if index in time_columns and is_day_fraction(value):
                values.append(excel_time_to_offset(value))
            else:
                values.append(to_text(value))
        string_rows.append(values)

    for index in sorted(time_columns):
        lowered = headers[index].lower()
        if any(hint in lowered for hint in TIME_HEADER_HINTS):
            continue
        if headers[index].startswith(PLACEHOLDER_PREFIX):
            headers[index] = f"Time ({PLACEHOLDER_PREFIX}{index + 1})"

    return {"headers": headers, "rows": string_rows}


# ══════════════════════════════════════════════════════════════════════════════
# XLSX READING
# ══════════════════════════════════════════════════════════════════════════════

def _cell_value(value: Any) -> Any:
    """Undo openpyxl's time conversion so time cells stay day fractions."""
    if isinstance(value, time):
        seconds = value.hour * 3600 + value.minute * 60 + value.second + value.microsecond / 1_000_000
        return seconds / 86400
    if isinstance(value, timedelta):
        return value.total_seconds() / 86400
    return value


def _read_source_bytes(source: XlsxSource) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, (str, Path)):
        try:
            return Path(source).read_bytes()
        except OSError as exc:
            raise FileReadError(f"Failed to read file: {exc}") from exc
    return source.read()


def _ole_failure(raw: bytes) -> FileReadError:
    # Password-protected OOXML is stored inside an OLE compound file.
    if "EncryptedPackage".encode("utf-16-le") in raw:
        return FileReadError("Encrypted workbook: password-protected files cannot be read")
    return FileReadError("Unsupported workbook format: legacy .xls content saved as .xlsx")


def read_xlsx_cells(source: XlsxSource) -> list[list[Any]]:
    """Return the raw cell values of the first worksheet, top to bottom."""
    try:
        from openpyxl import load_workbook
    except ImportError:
        raise ImportError(".xlsx files require openpyxl — run: pip install openpyxl")

    raw = _read_source_bytes(source)
    if raw.startswith(OLE_MAGIC):
        raise _ole_failure(raw)

    try:
        workbook = load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
    except zipfile.BadZipFile as exc:
        raise FileReadError(f"Corrupt workbook: {exc}") from exc
    except Exception as exc:
        raise FileReadError(f"Could not open workbook: {exc}") from exc

    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [
            [_cell_value(value) for value in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()


def load_xlsx(source: XlsxSource) -> dict[str, list]:
    return table_from_cells(read_xlsx_cells(source))

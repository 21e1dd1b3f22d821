"""
Import entry point.

Public API:
    table  = read_import_file("playlist.xlsx")     # {"headers", "rows"}
    table  = read_import_bytes("playlist.csv", raw)
    session = ImportSession()
    session.load("playlist.csv")
    result = session.commit(session.propose_mapping(), store)

Only .csv and .xlsx are accepted; anything else raises FileTypeError before
the file is read.  Read failures raise FileReadError and are turned into a
user-facing sentence by describe_read_failure().
"""

from __future__ import annotations

import re
import zipfile
from pathlib import Path
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import chardet
import requests

from cuesheet import csv_codec, spreadsheet
from cuesheet.errors import CueSheetError, FileReadError, FileTypeError, MappingIncompleteError
from cuesheet.mapping import apply_mapping, auto_map, check_import_mapping_complete, check_mapping_complete
from cuesheet.models import FIELDS, Row
from cuesheet.validation import validate_all_rows

CSV_FORMATS = {".csv"}
XLSX_FORMATS = {".xlsx"}
ALL_FORMATS = CSV_FORMATS | XLSX_FORMATS

MAX_REMOTE_FILE_MB = 20
MAX_REMOTE_FILE_BYTES = MAX_REMOTE_FILE_MB * 1024 * 1024
REMOTE_TIMEOUT_SECONDS = 60


class EmptyTableError(FileReadError):
    """The file was read but holds no header row or no data rows."""


# ══════════════════════════════════════════════════════════════════════════════
# FILE TYPE AND DECODING
# ══════════════════════════════════════════════════════════════════════════════

def check_file_type(name: str) -> str:
    suffix = Path(name).suffix.lower()
    if suffix not in ALL_FORMATS:
        raise FileTypeError(suffix, sorted(ALL_FORMATS))
    return suffix


def decode_csv_bytes(raw: bytes) -> str:
    """
    Decode CSV bytes as UTF-8, stripping a BOM.

    Files saved by older spreadsheet tools are often cp1252/latin-1; those
    fall back to the chardet guess, then latin-1, which never fails.
    """
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    detected = chardet.detect(raw).get("encoding")
    if detected:
        try:
            return raw.decode(detected)
        except (LookupError, UnicodeDecodeError):
            pass
    return raw.decode("latin-1")


def check_parsed_table(table: dict[str, list]) -> dict[str, list]:
    if not table.get("headers"):
        raise EmptyTableError("No column headers found in file. The first row should contain column names.")
    if not table.get("rows"):
        raise EmptyTableError("No data rows found in file. The file appears to contain only headers.")
    return table


# ══════════════════════════════════════════════════════════════════════════════
# READING
# ══════════════════════════════════════════════════════════════════════════════

def read_import_bytes(name: str, raw: bytes) -> dict[str, list]:
    suffix = check_file_type(name)
    if suffix in XLSX_FORMATS:
        return spreadsheet.load_xlsx(raw)
    return csv_codec.parse(decode_csv_bytes(raw))


def read_import_file(path: "str | Path") -> dict[str, list]:
    path = Path(path)
    check_file_type(path.name)
    if not path.exists():
        raise FileReadError(f"File not found: {path}")
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileReadError(f"Failed to read file: {exc}") from exc
    return read_import_bytes(path.name, raw)


def describe_read_failure(exc: BaseException) -> str:
    if isinstance(exc, FileTypeError):
        return "Invalid file type. Please upload a CSV or XLSX file."
    if isinstance(exc, EmptyTableError):
        return str(exc)

    message = str(exc)
    lowered = message.lower()
    if "encrypted" in lowered:
        return "This file appears to be password-protected. Please provide an unprotected file."
    if "unsupported" in lowered:
        return "This file format is not supported. Please use a standard CSV or XLSX file."
    if "corrupt" in lowered or isinstance(exc, (zipfile.BadZipFile, KeyError, TypeError)):
        return "Error processing file structure. The file may be corrupted or in an unexpected format."
    return f"Error reading file: {message or 'Unknown error'}. Please try again."


# ══════════════════════════════════════════════════════════════════════════════
# REMOTE FILES
# ══════════════════════════════════════════════════════════════════════════════

CONTENT_TYPE_EXTENSIONS = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "text/csv": ".csv",
    "application/csv": ".csv",
}


def normalize_public_url(raw_url: str) -> str:
    """Rewrite common share links into direct-download links."""
    parsed = urlparse(raw_url.strip())
    if parsed.scheme not in {"http", "https"}:
        raise FileReadError("URL must start with http:// or https://")

    host = parsed.netloc.lower()
    path = parsed.path
    query = parse_qs(parsed.query, keep_blank_values=True)

    if host == "github.com" and "/blob/" in path:
        owner_repo, blob_path = path.lstrip("/").split("/blob/", 1)
        return f"https://raw.githubusercontent.com/{owner_repo}/{blob_path}"

    if "dropbox.com" in host:
        query["dl"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    if host == "docs.google.com":
        sheet_match = re.search(r"/spreadsheets/d/([^/]+)", path)
        if sheet_match:
            gid = query.get("gid", ["0"])[0]
            # First worksheet only, so export the requested tab as xlsx.
            return (
                f"https://docs.google.com/spreadsheets/d/{sheet_match.group(1)}/export"
                f"?format=xlsx&gid={gid}"
            )

    if host == "drive.google.com":
        match = re.search(r"/file/d/([^/]+)", path)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"

    return raw_url.strip()


def remote_filename(url: str, response: requests.Response) -> str:
    content_disposition = response.headers.get("content-disposition", "")
    match = re.search(r'filename\*=UTF-8\'\'([^;]+)|filename="([^"]+)"|filename=([^;]+)', content_disposition, re.I)
    if match:
        for group in match.groups():
            if group:
                return Path(group.strip().strip('"')).name
    redirected = response.url or url
    return Path(urlparse(redirected).path).name or Path(urlparse(url).path).name or "downloaded_file"


def infer_remote_extension(filename: str, response: requests.Response, content: bytes) -> str:
    ext = Path(filename).suffix.lower()
    if ext in ALL_FORMATS:
        return ext
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[content_type]
    if content.startswith(b"PK"):
        return ".xlsx"
    return ext


def fetch_remote_file(url: str) -> tuple[str, bytes]:
    """Download a public .csv/.xlsx URL; returns (filename, content)."""
    direct_url = normalize_public_url(url)

    try:
        response = requests.get(direct_url, timeout=REMOTE_TIMEOUT_SECONDS, allow_redirects=True, stream=True)
    except requests.RequestException as exc:
        raise FileReadError(f"Failed to download file: {exc}") from exc

    try:
        response.raise_for_status()
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > MAX_REMOTE_FILE_BYTES:
            raise FileReadError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")

        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > MAX_REMOTE_FILE_BYTES:
                raise FileReadError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")
            chunks.append(chunk)
    except requests.RequestException as exc:
        raise FileReadError(f"Failed to download file: {exc}") from exc
    finally:
        response.close()

    content = b"".join(chunks)
    filename = remote_filename(direct_url, response)
    ext = infer_remote_extension(filename, response, content)
    if Path(filename).suffix.lower() != ext:
        filename = f"{Path(filename).stem}{ext}"
    check_file_type(filename)
    return filename, content


# ══════════════════════════════════════════════════════════════════════════════
# IMPORT SESSION
# ══════════════════════════════════════════════════════════════════════════════

class ImportSession:
    """
    Staging area between reading a file and committing its rows.

    Every read gets a token from begin_read(); only the most recent token may
    stage a table, so a slow earlier read can never overwrite a later one.
    """

    def __init__(self) -> None:
        self._token = 0
        self.source_name: Optional[str] = None
        self.table: Optional[dict[str, list]] = None
        self.mapping: Optional[dict[str, Optional[str]]] = None

    @property
    def headers(self) -> list[str]:
        return list(self.table["headers"]) if self.table else []

    def begin_read(self, name: str) -> int:
        check_file_type(name)
        self._token += 1
        self.source_name = name
        self.table = None
        self.mapping = None
        return self._token

    def is_current(self, token: int) -> bool:
        return token == self._token

    def finish_read(self, token: int, table: dict[str, list]) -> bool:
        if not self.is_current(token):
            return False
        self.table = check_parsed_table(table)
        self.mapping = auto_map(table["headers"])
        return True

    def load(self, path: "str | Path") -> dict[str, list]:
        path = Path(path)
        token = self.begin_read(path.name)
        self.finish_read(token, read_import_file(path))
        return self.table

    def load_bytes(self, name: str, raw: bytes) -> dict[str, list]:
        token = self.begin_read(name)
        self.finish_read(token, read_import_bytes(name, raw))
        return self.table

    def set_mapping(self, field: str, header: Optional[str]) -> None:
        if self.mapping is None:
            raise CueSheetError("No file has been loaded for import.")
        if field not in FIELDS:
            raise KeyError(f"Unknown field: {field}")
        self.mapping[field] = header or None

    def propose_mapping(self) -> dict[str, Optional[str]]:
        if self.table is None:
            raise CueSheetError("No file has been loaded for import.")
        return dict(self.mapping or auto_map(self.table["headers"]))

    def mapping_status(self) -> dict[str, Any]:
        mapping = self.mapping or {}
        return {
            "export_ready": check_mapping_complete(mapping),
            "import_minimum": check_import_mapping_complete(mapping),
        }

    def commit(self, mapping: Optional[dict[str, Optional[str]]], store) -> dict[str, Any]:
        if self.table is None:
            raise CueSheetError("No file has been loaded for import.")
        mapping = dict(mapping if mapping is not None else self.mapping or {})

        check = check_import_mapping_complete(mapping)
        if not check["complete"]:
            raise MappingIncompleteError(check["missing"])

        rows: list[Row] = apply_mapping(self.table, mapping)
        store.import_rows(rows)
        self.cancel()
        return {"rows": rows, "validation": validate_all_rows(store.get_rows())}

    def cancel(self) -> None:
        self.source_name = None
        self.table = None
        self.mapping = None

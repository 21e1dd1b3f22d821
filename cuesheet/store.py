"""
In-memory cue sheet store.

CueSheetStore owns the Row collection for one editing session.  Every
mutation notifies subscribers synchronously with the name of what changed
("rows", "file_name", or "reset").  Readers always receive copies.

All mutation is expected to happen on one thread (the UI's); the store does
no locking of its own.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Iterable, Optional

from cuesheet.console import eprint
from cuesheet.exporter import sanitize_filename
from cuesheet.models import FIELDS, INSERTED_MEDIA_TYPE, Row, generate_id, row_from_data

Listener = Callable[[str], None]


class CueSheetStore:
    def __init__(self, file_name: str = "") -> None:
        self._file_name = sanitize_filename(file_name) if file_name else ""
        self._rows: list[Row] = []
        self._unsaved = False
        self._listeners: list[Listener] = []

    # ── Reading ────────────────────────────────────────────────────────────

    @property
    def file_name(self) -> str:
        return self._file_name

    def get_rows(self) -> list[Row]:
        return [replace(row) for row in self._rows]

    def get_row(self, row_id: str) -> Optional[Row]:
        for row in self._rows:
            if row.id == row_id:
                return replace(row)
        return None

    def get_row_index(self, row_id: str) -> int:
        for index, row in enumerate(self._rows):
            if row.id == row_id:
                return index
        return -1

    def row_count(self) -> int:
        return len(self._rows)

    def has_rows(self) -> bool:
        return bool(self._rows)

    def has_unsaved_changes(self) -> bool:
        return self._unsaved and bool(self._rows)

    # ── Mutation ───────────────────────────────────────────────────────────

    def set_file_name(self, name: str) -> None:
        self._file_name = sanitize_filename(name)
        self._notify("file_name")

    def add_row(self, data: dict[str, Any]) -> Row:
        row = row_from_data({**data, "id": None})
        self._rows.append(row)
        self._changed()
        return replace(row)

    def insert_row_before(self, before_id: str, data: dict[str, Any]) -> Row:
        row = row_from_data({**data, "id": None}, media_type_default=INSERTED_MEDIA_TYPE)
        index = self.get_row_index(before_id)
        if index == -1:
            self._rows.append(row)
        else:
            self._rows.insert(index, row)
        self._changed()
        return replace(row)

    def update_row(self, row_id: str, updates: dict[str, Any]) -> bool:
        index = self.get_row_index(row_id)
        if index == -1:
            return False
        changes = {key: value for key, value in updates.items() if key in FIELDS}
        self._rows[index] = replace(self._rows[index], **changes)
        self._changed()
        return True

    def delete_row(self, row_id: str) -> bool:
        index = self.get_row_index(row_id)
        if index == -1:
            return False
        del self._rows[index]
        self._changed()
        return True

    def clear_all_rows(self) -> None:
        self._rows = []
        self._unsaved = False
        self._notify("rows")

    def import_rows(self, rows: Iterable[Row]) -> None:
        """Replace the whole collection, keeping ids that are already set."""
        self._rows = [
            row_from_data({**row.to_dict(), "id": row.id or generate_id()})
            for row in rows
        ]
        self._changed()

    def mark_saved(self) -> None:
        self._unsaved = False

    def reset(self) -> None:
        self._file_name = ""
        self._rows = []
        self._unsaved = False
        self._notify("reset")

    # ── Subscriptions ──────────────────────────────────────────────────────

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            self._listeners = [listener for listener in self._listeners if listener is not callback]

        return unsubscribe

    def _changed(self) -> None:
        self._unsaved = True
        self._notify("rows")

    def _notify(self, key: str) -> None:
        for callback in list(self._listeners):
            try:
                callback(key)
            except Exception as exc:
                eprint(f"Store listener error ({key}): {exc}")

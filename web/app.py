#!/usr/bin/env python3
from __future__ import annotations

from typing import Optional

import pandas as pd
import streamlit as st

from cuesheet.errors import CueSheetError, MappingIncompleteError
from cuesheet.exporter import default_session_name, encode_csv, prepare_export
from cuesheet.frames import errors_to_frame, frame_to_rows, rows_to_frame, table_to_frame
from cuesheet.importer import (
    ALL_FORMATS,
    MAX_REMOTE_FILE_MB,
    ImportSession,
    describe_read_failure,
    fetch_remote_file,
    read_import_bytes,
)
from cuesheet.mapping import MAPPING_FIELDS, check_import_mapping_complete, check_mapping_complete
from cuesheet.models import MEDIA_TYPES
from cuesheet.offsets import build_offset
from cuesheet.store import CueSheetStore
from cuesheet.validation import get_field_errors, validate_all_rows, validate_time_component

UNMAPPED = "(not mapped)"
PREVIEW_ROWS = 5
TIME_INPUTS = [
    ("hours", "HH", 99),
    ("minutes", "MM", 59),
    ("seconds", "SS", 59),
    ("milliseconds", "mmm", 999),
]


def bump_grid_version(key: str) -> None:
    if key in {"rows", "reset"}:
        st.session_state["grid_version"] = st.session_state.get("grid_version", 0) + 1


def ensure_state() -> None:
    if "store" not in st.session_state:
        store = CueSheetStore(default_session_name())
        store.subscribe(bump_grid_version)
        st.session_state["store"] = store
    st.session_state.setdefault("import_session", ImportSession())
    st.session_state.setdefault("import_error", None)
    st.session_state.setdefault("import_notice", None)
    st.session_state.setdefault("upload_signature", None)
    st.session_state.setdefault("grid_version", 0)
    st.session_state.setdefault("remote_url_input", "")


def get_store() -> CueSheetStore:
    return st.session_state["store"]


def get_import_session() -> ImportSession:
    return st.session_state["import_session"]


def stage_import(name: str, raw: bytes) -> None:
    session = get_import_session()
    st.session_state["import_error"] = None
    try:
        token = session.begin_read(name)
        table = read_import_bytes(name, raw)
        if not session.finish_read(token, table):
            return
    except (CueSheetError, ImportError) as exc:
        session.cancel()
        st.session_state["import_error"] = describe_read_failure(exc)


def set_visuals() -> None:
    st.set_page_config(page_title="Cue Sheet Builder", page_icon="🎙️", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        :root {
            --qt-bg: #ffffff;
            --qt-bg-secondary: #fafafe;
            --qt-surface-strong: rgba(250, 250, 254, 1);
            --qt-text: #2a2a32;
            --qt-text-muted: #8b8ba3;
            --qt-border: #e8e8f0;
            --qt-primary: #9d72ff;
            --qt-primary-strong: #8b4cf7;
        }
        @media (prefers-color-scheme: dark) {
            :root {
                --qt-bg: #1a1a1a;
                --qt-bg-secondary: #22222b;
                --qt-surface-strong: rgba(30, 30, 39, 1);
                --qt-text: #f4f4f8;
                --qt-text-muted: #aeaec0;
                --qt-border: rgba(66, 66, 79, 0.8);
                --qt-primary: #b89fff;
                --qt-primary-strong: #9d72ff;
            }
        }
        .stApp {
            background: linear-gradient(180deg, var(--qt-bg) 0%, var(--qt-bg-secondary) 100%);
            color: var(--qt-text);
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        }
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
            max-width: 1200px;
        }
        [data-testid="stDecoration"], [data-testid="stStatusWidget"] {
            display: none !important;
        }
        .queue-note {
            margin: 0.4rem 0 1rem;
            color: var(--qt-text-muted);
            font-size: 0.95rem;
        }
        .stButton > button, .stDownloadButton > button, .stFormSubmitButton > button {
            border-radius: 999px !important;
            border: 1px solid transparent !important;
            background: linear-gradient(135deg, var(--qt-primary) 0%, var(--qt-primary-strong) 100%) !important;
            color: #ffffff !important;
            font-weight: 600 !important;
        }
        [data-testid="stMetric"] {
            background: var(--qt-surface-strong);
            border: 1px solid var(--qt-border);
            border-radius: 18px;
            padding: 0.85rem 1rem;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


# ══════════════════════════════════════════════════════════════════════════════
# QUICK ADD
# ══════════════════════════════════════════════════════════════════════════════

def render_quick_add() -> None:
    store = get_store()
    with st.form("quick_add", clear_on_submit=True):
        st.markdown("**Quick add**")
        time_cols = st.columns(len(TIME_INPUTS))
        components: dict[str, int] = {}
        for col, (kind, label, upper) in zip(time_cols, TIME_INPUTS):
            raw = col.number_input(label, min_value=0, max_value=upper, value=0, step=1, key=f"quick_{kind}")
            components[kind] = validate_time_component(raw, kind)

        left, right = st.columns([1, 3])
        media_type = left.selectbox("Media type", options=MEDIA_TYPES, index=0)
        title = right.text_input("Title")
        artist_col, album_col, year_col = st.columns([2, 2, 1])
        artist = artist_col.text_input("Artist")
        album = album_col.text_input("Album")
        year = year_col.text_input("Year")
        submitted = st.form_submit_button("Add row")

    if not submitted:
        return

    offset = build_offset(
        components["hours"],
        components["minutes"],
        components["seconds"],
        components["milliseconds"],
    )
    row = store.add_row(
        {
            "offset": offset,
            "media_type": media_type,
            "title": title.strip(),
            "artist": artist.strip(),
            "album": album.strip(),
            "year": year.strip(),
        }
    )
    field_errors = get_field_errors(row, store.get_rows())
    if field_errors:
        st.warning("Row added with problems:\n- " + "\n- ".join(f"{field}: {message}" for field, message in field_errors.items()))
    else:
        st.success(f"Added row at {offset}.")


# ══════════════════════════════════════════════════════════════════════════════
# GRID
# ══════════════════════════════════════════════════════════════════════════════

def render_grid() -> None:
    store = get_store()
    rows = store.get_rows()
    frame = rows_to_frame(rows)
    edited = st.data_editor(
        frame,
        key=f"grid_{st.session_state['grid_version']}",
        num_rows="dynamic",
        hide_index=True,
        width="stretch",
        column_order=["offset", "media_type", "title", "artist", "album", "year"],
        column_config={
            "id": None,
            "offset": st.column_config.TextColumn("Offset", help="HH:MM:SS.mmm"),
            "media_type": st.column_config.SelectboxColumn("Media Type", options=MEDIA_TYPES),
            "title": st.column_config.TextColumn("Title"),
            "artist": st.column_config.TextColumn("Artist"),
            "album": st.column_config.TextColumn("Album"),
            "year": st.column_config.TextColumn("Year"),
        },
    )
    edited_rows = frame_to_rows(pd.DataFrame(edited))
    if edited_rows != rows:
        store.import_rows(edited_rows)
        st.rerun()

    if rows:
        labels = {row.id: f"{index}. {row.offset or '[no offset]'}  {row.title or '[untitled]'}" for index, row in enumerate(rows, start=1)}
        pick_col, insert_col, clear_col = st.columns([3, 1, 1])
        before_id = pick_col.selectbox("Row", options=list(labels), format_func=labels.get, label_visibility="collapsed")
        if insert_col.button("Insert talk row before", width="stretch"):
            store.insert_row_before(before_id, {})
            st.rerun()
        if clear_col.button("Clear all rows", width="stretch"):
            store.clear_all_rows()
            st.rerun()


def render_validation() -> None:
    store = get_store()
    rows = store.get_rows()
    result = validate_all_rows(rows)
    metrics = st.columns(3)
    metrics[0].metric("Rows", len(rows))
    metrics[1].metric("Errors", len(result["errors"]))
    metrics[2].metric("Unsaved changes", "Yes" if store.has_unsaved_changes() else "No")
    if result["errors"]:
        with st.expander(f"Validation errors ({len(result['errors'])})", expanded=True):
            st.dataframe(errors_to_frame(result["errors"]), width="stretch", hide_index=True)


# ══════════════════════════════════════════════════════════════════════════════
# IMPORT
# ══════════════════════════════════════════════════════════════════════════════

def render_import_sources() -> None:
    upload = st.file_uploader(
        "Import a playlist file",
        type=[ext.lstrip(".") for ext in sorted(ALL_FORMATS)],
        key="upload_input",
    )
    if upload is not None:
        signature = (upload.name, upload.size)
        if st.session_state["upload_signature"] != signature:
            st.session_state["upload_signature"] = signature
            stage_import(upload.name, upload.getvalue())

    url_col, fetch_col = st.columns([4, 1])
    url_col.text_input(
        "Public file URL",
        key="remote_url_input",
        placeholder="Direct links and public share links from GitHub, Dropbox, or Google Sheets.",
        label_visibility="collapsed",
    )
    if fetch_col.button("Fetch", width="stretch", disabled=not st.session_state["remote_url_input"].strip()):
        try:
            name, raw = fetch_remote_file(st.session_state["remote_url_input"])
        except CueSheetError as exc:
            st.session_state["import_error"] = describe_read_failure(exc)
        else:
            stage_import(name, raw)
    st.caption(f"URL import makes an outbound request and rejects remote files above {MAX_REMOTE_FILE_MB} MB.")

    if st.session_state["import_error"]:
        st.error(st.session_state["import_error"])
    if st.session_state["import_notice"]:
        st.success(st.session_state["import_notice"])
        st.session_state["import_notice"] = None


def selected_mapping(headers: list[str], proposed: dict[str, Optional[str]]) -> dict[str, Optional[str]]:
    options = [UNMAPPED, *headers]
    mapping: dict[str, Optional[str]] = {}
    cols = st.columns(3)
    for index, field_info in enumerate(MAPPING_FIELDS):
        key = field_info["key"]
        default = proposed.get(key)
        label = field_info["label"] + (" *" if field_info["required"] else "")
        choice = cols[index % 3].selectbox(
            label,
            options=options,
            index=options.index(default) if default in options else 0,
            key=f"map_{key}",
            help=field_info["note"],
        )
        mapping[key] = None if choice == UNMAPPED else choice
    return mapping


def render_mapping() -> None:
    session = get_import_session()
    if session.table is None:
        return

    store = get_store()
    st.markdown(f"**Map columns from {session.source_name}**")
    st.dataframe(table_to_frame(session.table, limit=PREVIEW_ROWS), width="stretch", hide_index=True)
    st.markdown(
        f'<div class="queue-note">{len(session.table["rows"])} data row(s) found.</div>',
        unsafe_allow_html=True,
    )

    mapping = selected_mapping(session.headers, session.propose_mapping())
    import_check = check_import_mapping_complete(mapping)
    export_check = check_mapping_complete(mapping)
    if not import_check["complete"]:
        st.error("Map the Title column to import.")
    elif not export_check["complete"]:
        st.info("Not mapped yet: " + ", ".join(export_check["missing"]) + ". You can fill these in after import.")

    replace_ok = True
    if store.has_rows():
        replace_ok = st.checkbox(f"Replace the {store.row_count()} existing row(s)", value=False)

    import_col, cancel_col = st.columns(2)
    if import_col.button("Import rows", type="primary", width="stretch", disabled=not import_check["complete"] or not replace_ok):
        try:
            result = session.commit(mapping, store)
        except MappingIncompleteError as exc:
            st.error(str(exc))
            return
        count = len(result["rows"])
        errors = len(result["validation"]["errors"])
        st.session_state["import_notice"] = f"Imported {count} row(s)" + (f" with {errors} validation error(s)." if errors else ".")
        st.session_state["upload_signature"] = None
        st.rerun()
    if cancel_col.button("Cancel import", width="stretch"):
        session.cancel()
        st.rerun()


# ══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ══════════════════════════════════════════════════════════════════════════════

def render_export() -> None:
    store = get_store()
    export = prepare_export(store.get_rows(), store.file_name)
    if export["status"] == "no_data":
        st.info(export["message"])
        return
    if export["status"] == "invalid":
        st.error(export["message"])
        return
    st.download_button(
        f"Download {export['filename']}",
        data=encode_csv(export["content"]),
        file_name=export["filename"],
        mime="text/csv",
        width="stretch",
        on_click=store.mark_saved,
    )


def main() -> None:
    set_visuals()
    ensure_state()
    store = get_store()

    st.title("Cue Sheet Builder")
    st.caption("Build a playout cue sheet by hand or import one from CSV/XLSX, fix what validation flags, and download the CSV.")

    name = st.text_input("Session name", value=store.file_name)
    if name != store.file_name:
        store.set_file_name(name)

    editor_tab, import_tab = st.tabs(["Editor", "Import"])
    with editor_tab:
        render_quick_add()
        render_grid()
        render_validation()
        render_export()
    with import_tab:
        render_import_sources()
        render_mapping()


if __name__ == "__main__":
    main()

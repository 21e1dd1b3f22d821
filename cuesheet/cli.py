from __future__ import annotations

import argparse
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from cuesheet import __version__ as TOOL_VERSION
from cuesheet.console import eprint, emit_human
from cuesheet.contracts import build_contract, build_run_summary
from cuesheet.errors import ERROR_KINDS, FileReadError, FileTypeError, MappingIncompleteError
from cuesheet.exporter import prepare_export, write_export
from cuesheet.importer import ImportSession, describe_read_failure, read_import_file
from cuesheet.mapping import (
    apply_mapping,
    auto_map,
    check_import_mapping_complete,
    check_mapping_complete,
    empty_mapping,
)
from cuesheet.models import FIELDS
from cuesheet.store import CueSheetStore
from cuesheet.validation import validate_all_rows

TOOL_NAME = "cue-sheet"
SUPPORTED_MAPPING_SUFFIXES = {".json"}
DEFAULT_MAPPING_PATH = "cue-sheet-mapping.json"

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_READ_FAILED = 2
EXIT_VALIDATE_FAILED = 5
EXIT_MAPPING_INCOMPLETE = 6


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class CueSheetArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("CUESHEET_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "cue-sheet-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def remove_generated_at(value: Any) -> Any:
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if key == "generated_at":
                result[key] = "1970-01-01T00:00:00Z"
            else:
                result[key] = remove_generated_at(item)
        return result
    if isinstance(value, list):
        return [remove_generated_at(item) for item in value]
    return value


def safe_output_path(path: Path, *, force: bool = False) -> Path:
    if not force and path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, MappingIncompleteError):
        return EXIT_MAPPING_INCOMPLETE
    if isinstance(exc, FileTypeError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (FileReadError, ImportError, UnicodeDecodeError)):
        return EXIT_READ_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_READ_FAILED
    return EXIT_COMMAND_ERROR


def report_exception(exc: Exception, *, verbose: bool = False) -> int:
    if isinstance(exc, (FileReadError, FileTypeError)):
        eprint(describe_read_failure(exc))
        if verbose:
            eprint(f"Cause: {exc}")
    else:
        eprint(str(exc))
    return classify_backend_exception(exc)


def load_mapping_file(mapping_path: Path) -> dict[str, Optional[str]]:
    if not mapping_path.exists():
        raise CliError(f"Mapping file not found: {mapping_path}", EXIT_COMMAND_ERROR)
    suffix = mapping_path.suffix.lower()
    if suffix not in SUPPORTED_MAPPING_SUFFIXES:
        raise CliError("Mapping file must be .json", EXIT_COMMAND_ERROR)
    try:
        payload = json.loads(mapping_path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise CliError(f"Could not read mapping file: {exc}", EXIT_COMMAND_ERROR) from exc
    if not isinstance(payload, dict):
        raise CliError("Mapping file root must be a JSON object.", EXIT_COMMAND_ERROR)

    unknown = sorted(key for key in payload if key not in FIELDS)
    if unknown:
        raise CliError(f"Unknown mapping fields: {', '.join(unknown)}", EXIT_COMMAND_ERROR)

    mapping = empty_mapping()
    for field, header in payload.items():
        if header is not None and not isinstance(header, str):
            raise CliError(f"Mapping for '{field}' must be a header name or null.", EXIT_COMMAND_ERROR)
        mapping[field] = header or None
    return mapping


def canonical_mapping(headers: list[str]) -> dict[str, Optional[str]]:
    """Map each field to the header of the same name, if present."""
    present = {header.strip().lower(): header for header in headers}
    return {field: present.get(field) for field in FIELDS}


def check_input_exists(input_path: Path) -> None:
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)


# ══════════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def render_mapping_lines(mapping: dict[str, Optional[str]]) -> list[str]:
    return [f"  {field}: {mapping.get(field) or '[unmapped]'}" for field in FIELDS]


def render_error_lines(errors: list[dict[str, Any]], limit: int = 50) -> list[str]:
    lines = [f"- row {error['row_num']} {error['field']}: {error['message']}" for error in errors[:limit]]
    if len(errors) > limit:
        lines.append(f"... and {len(errors) - limit} more")
    return lines


def render_mapping_text(payload: dict[str, Any]) -> str:
    lines = [
        "cue-sheet map",
        f"Input: {payload['input']}",
        f"Headers: {', '.join(payload['headers'])}",
        "Mapping:",
        *render_mapping_lines(payload["mapping"]),
        f"Import ready: {payload['import_check']['complete']}",
        f"Export ready: {payload['export_check']['complete']}",
    ]
    if payload["export_check"]["missing"]:
        lines.append("Missing for export: " + ", ".join(payload["export_check"]["missing"]))
    return "\n".join(lines) + "\n"


def render_import_text(payload: dict[str, Any]) -> str:
    lines = [
        "cue-sheet import",
        f"Input: {payload['input']}",
        "Mapping:",
        *render_mapping_lines(payload["mapping"]),
        f"Rows: {payload['row_count']}",
        f"Valid: {payload['valid']}",
        f"Errors: {payload['error_count']}",
    ]
    if payload["errors"]:
        lines.append("Validation errors:")
        lines.extend(render_error_lines(payload["errors"]))
    if payload.get("output"):
        lines.append(f"Output: {payload['output']}")
    return "\n".join(lines) + "\n"


def render_validate_text(payload: dict[str, Any]) -> str:
    lines = [
        "cue-sheet validate",
        f"Input: {payload['input']}",
        f"Rows: {payload['row_count']}",
        f"Valid: {payload['valid']}",
        f"Errors: {payload['error_count']}",
    ]
    if payload["missing_columns"]:
        lines.append("Missing columns: " + ", ".join(payload["missing_columns"]))
    if payload["errors"]:
        lines.extend(render_error_lines(payload["errors"]))
    return "\n".join(lines) + "\n"


EXPLAIN_RULES = {
    "offset_required": {
        "kind": "required",
        "description": "Every row needs an offset.",
        "evidence": "The offset cell is empty or whitespace.",
        "fix_hint": "Enter the elapsed time from the start of the broadcast as HH:MM:SS.mmm.",
    },
    "offset_format": {
        "kind": "format",
        "description": "Offsets must be written as HH:MM:SS.mmm.",
        "evidence": "The value is not two-digit hours, minutes, seconds and three-digit milliseconds, or minutes/seconds exceed 59.",
        "fix_hint": "Use zero padding, for example 00:03:45.000.",
    },
    "offset_duplicate": {
        "kind": "duplicate",
        "description": "Two rows share the same offset.",
        "evidence": "Another row in the sheet has an identical offset string; both rows are reported.",
        "fix_hint": "Change one of the offsets. Duplicates are never merged automatically.",
    },
    "media_type_required": {
        "kind": "required",
        "description": "Every row needs a media type.",
        "evidence": "The media type cell is empty.",
        "fix_hint": "Use one of: music, talk, id, promo, ad.",
    },
    "media_type_format": {
        "kind": "format",
        "description": "Media type is outside the allowed set.",
        "evidence": "The value is not music, talk, id, promo, or ad (case-insensitive).",
        "fix_hint": "Pick one of the allowed media types. Upper-case input is accepted and written lowercase.",
    },
    "title_required": {
        "kind": "required",
        "description": "Every row needs a title.",
        "evidence": "The title cell is empty.",
        "fix_hint": "Enter the track or segment title.",
    },
    "artist_required": {
        "kind": "required",
        "description": "Music and talk rows need an artist.",
        "evidence": "Media type is music or talk and the artist cell is empty.",
        "fix_hint": "Enter the performer or host, or change the media type if the row is an id, promo, or ad.",
    },
    "text_length": {
        "kind": "length",
        "description": "Title, artist, and album are limited to 500 characters.",
        "evidence": "The cell text is longer than 500 characters.",
        "fix_hint": "Shorten the text.",
    },
    "year_format": {
        "kind": "format",
        "description": "Year must be a 4-digit number when present.",
        "evidence": "The year cell is not exactly four digits.",
        "fix_hint": "Enter a year such as 1999, or leave the cell empty.",
    },
    "year_range": {
        "kind": "range",
        "description": "Year must be between 1900 and 2100.",
        "evidence": "The year is four digits but outside the allowed range.",
        "fix_hint": "Correct the year or leave the cell empty.",
    },
    "mapping_incomplete": {
        "kind": None,
        "description": "Import needs at least the title column mapped; export needs offset, media type, title, artist, and album.",
        "evidence": "No source header matched the field by exact or partial alias and no mapping file supplied it.",
        "fix_hint": "Run `cue-sheet config init` and pass the edited file with --mapping.",
    },
}


def build_parser() -> argparse.ArgumentParser:
    parser = CueSheetArgumentParser(prog=TOOL_NAME, description="Import, validate, and export broadcast cue sheets.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    map_cmd = subparsers.add_parser("map", help="Show the automatic column mapping for a file.")
    map_cmd.add_argument("input", help="Input .csv or .xlsx path")
    map_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    map_cmd.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    map_cmd.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    import_cmd = subparsers.add_parser("import", help="Import a playlist file and write a cue-sheet CSV.")
    import_cmd.add_argument("input", help="Input .csv or .xlsx path")
    import_cmd.add_argument("--mapping", help="JSON mapping file (field -> source header)")
    import_cmd.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    import_cmd.add_argument("--output", help="Explicit CSV output path")
    import_cmd.add_argument("--name", help="Session name used for the output file name")
    import_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    import_cmd.add_argument("--force", action="store_true", help="Overwrite existing outputs")
    import_cmd.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    import_cmd.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    validate = subparsers.add_parser("validate", help="Validate a cue sheet in the canonical column layout.")
    validate.add_argument("input", help="Input .csv or .xlsx path")
    validate.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    validate.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    validate.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    export = subparsers.add_parser("export", help="Re-serialise a canonical cue sheet (sorted, quoted, CRLF).")
    export.add_argument("input", help="Input .csv or .xlsx path")
    export.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    export.add_argument("--output", help="Explicit CSV output path")
    export.add_argument("--name", help="Session name used for the output file name")
    export.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    export.add_argument("--force", action="store_true", help="Overwrite existing outputs")
    export.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    export.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter mapping file.")
    config_init.add_argument("--path", default=DEFAULT_MAPPING_PATH, help="Mapping file output path")

    explain = subparsers.add_parser("explain", help="Explain a validation rule id.")
    explain.add_argument("rule_id", help="Rule identifier")
    explain.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def run_map(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input_exists(input_path)
        table = read_import_file(input_path)
        mapping = auto_map(table["headers"])
        payload = {
            "contract": build_contract("cuesheet.mapping"),
            "tool": TOOL_NAME,
            "command": "map",
            "version": TOOL_VERSION,
            "input": str(input_path),
            "headers": list(table["headers"]),
            "row_count": len(table["rows"]),
            "mapping": mapping,
            "import_check": check_import_mapping_complete(mapping),
            "export_check": check_mapping_complete(mapping),
        }
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_mapping_text(payload).rstrip(), quiet=args.quiet)
        if not payload["import_check"]["complete"]:
            return EXIT_MAPPING_INCOMPLETE
        return EXIT_SUCCESS
    except Exception as exc:
        return report_exception(exc, verbose=args.verbose)


def run_import(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input_exists(input_path)
        session = ImportSession()
        session.load(input_path)
        emit_human(f"Read {len(session.table['rows'])} data rows from {input_path}", quiet=args.quiet or not args.verbose)

        mapping = load_mapping_file(Path(args.mapping)) if args.mapping else session.propose_mapping()
        store = CueSheetStore(args.name or input_path.stem)
        result = session.commit(mapping, store)
        validation = result["validation"]

        out_dir = determine_output_dir(args, input_path)
        export = prepare_export(store.get_rows(), store.file_name)
        # Nothing is written until every target path is cleared.
        output_path: Path | None = None
        if export["status"] == "ok":
            output_path = Path(args.output) if args.output else out_dir / export["filename"]
            output_path = safe_output_path(output_path, force=args.force)
        summary_path: Path | None = None
        if not args.output:
            summary_path = safe_output_path(out_dir / "import-summary.json", force=args.force)

        if output_path is not None:
            write_export(output_path, export["content"])
            store.mark_saved()

        status = "ok" if validation["valid"] else "invalid"
        payload = {
            "contract": build_contract("cuesheet.import_summary"),
            "tool": TOOL_NAME,
            "command": "import",
            "version": TOOL_VERSION,
            "input": str(input_path),
            "mapping": mapping,
            "export_check": check_mapping_complete(mapping),
            "row_count": store.row_count(),
            "valid": validation["valid"],
            "error_count": len(validation["errors"]),
            "errors": validation["errors"],
            "output": str(output_path) if output_path else None,
            "run_summary": build_run_summary(
                tool=TOOL_NAME,
                command="import",
                input_path=input_path,
                session_name=store.file_name,
                rows=store.get_rows(),
                status=status,
                output_path=output_path,
                metrics={"rows_imported": store.row_count(), "validation_errors": len(validation["errors"])},
                warnings=[] if validation["valid"] else [export["message"]],
            ),
        }
        payload = remove_generated_at(payload)
        if summary_path is not None:
            write_json(summary_path, payload)

        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_import_text(payload).rstrip(), quiet=args.quiet)
            if not validation["valid"]:
                emit_human(export["message"], quiet=args.quiet)
        return EXIT_SUCCESS if validation["valid"] else EXIT_VALIDATE_FAILED
    except Exception as exc:
        return report_exception(exc, verbose=args.verbose)


def load_canonical_rows(input_path: Path) -> tuple[list[str], list]:
    table = read_import_file(input_path)
    mapping = canonical_mapping(table["headers"])
    missing = [field for field in FIELDS if field != "year" and not mapping[field]]
    return missing, apply_mapping(table, mapping)


def run_validate(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input_exists(input_path)
        missing_columns, rows = load_canonical_rows(input_path)
        validation = validate_all_rows(rows)
        payload = {
            "contract": build_contract("cuesheet.validation"),
            "tool": TOOL_NAME,
            "command": "validate",
            "version": TOOL_VERSION,
            "input": str(input_path),
            "row_count": len(rows),
            "missing_columns": missing_columns,
            "valid": validation["valid"] and not missing_columns,
            "error_count": len(validation["errors"]),
            "errors": validation["errors"],
        }
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_validate_text(payload).rstrip(), quiet=args.quiet)
        if missing_columns:
            return EXIT_MAPPING_INCOMPLETE
        return EXIT_SUCCESS if payload["valid"] else EXIT_VALIDATE_FAILED
    except Exception as exc:
        return report_exception(exc, verbose=args.verbose)


def run_export(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input_exists(input_path)
        missing_columns, rows = load_canonical_rows(input_path)
        if missing_columns:
            raise MappingIncompleteError(missing_columns)

        export = prepare_export(rows, args.name or input_path.stem)
        if export["status"] == "no_data":
            raise CliError(export["message"], EXIT_COMMAND_ERROR)
        if export["status"] == "invalid":
            if args.json:
                maybe_emit_json_stdout({"valid": False, "errors": export["errors"]}, True)
            else:
                emit_human("\n".join(render_error_lines(export["errors"])), quiet=args.quiet)
            eprint(export["message"])
            return EXIT_VALIDATE_FAILED

        out_dir = determine_output_dir(args, input_path)
        output_path = Path(args.output) if args.output else out_dir / export["filename"]
        output_path = safe_output_path(output_path, force=args.force)
        write_export(output_path, export["content"])

        payload = remove_generated_at(
            {
                "contract": build_contract("cuesheet.export_summary"),
                "valid": True,
                "row_count": export["row_count"],
                "output": str(output_path),
                "run_summary": build_run_summary(
                    tool=TOOL_NAME,
                    command="export",
                    input_path=input_path,
                    session_name=Path(export["filename"]).stem,
                    rows=rows,
                    output_path=output_path,
                    metrics={"rows_exported": export["row_count"]},
                ),
            }
        )
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(f"Exported {export['row_count']} rows: {output_path}", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        return report_exception(exc, verbose=args.verbose)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    payload = {
        "offset": "Time",
        "media_type": "Type",
        "title": "Title",
        "artist": "Artist",
        "album": "Album",
        "year": None,
    }
    write_json(config_path, payload)
    emit_human(f"Mapping file written: {config_path}")
    return EXIT_SUCCESS


def run_explain(args: argparse.Namespace) -> int:
    rule = EXPLAIN_RULES.get(args.rule_id)
    if rule is None:
        eprint(f"Unknown rule id: {args.rule_id}")
        return EXIT_COMMAND_ERROR
    kind = rule["kind"]
    payload = {
        "rule_id": args.rule_id,
        "kind": kind,
        "kind_description": ERROR_KINDS[kind]["description"] if kind else None,
        "description": rule["description"],
        "evidence": rule["evidence"],
        "fix_hint": rule["fix_hint"],
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(
            "\n".join(
                [
                    f"Rule: {args.rule_id}",
                    f"Error kind: {kind or '[import]'}",
                    f"What it checks: {payload['description']}",
                    f"What triggers it: {payload['evidence']}",
                    f"How to fix it: {payload['fix_hint']}",
                ]
            )
        )
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "map":
            return run_map(args)
        if args.command == "import":
            return run_import(args)
        if args.command == "validate":
            return run_validate(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "explain":
            return run_explain(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())

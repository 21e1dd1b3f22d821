from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from cuesheet import __version__


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "cuesheet.cli"]
FIXED_STAMP = "20260301T010203Z"
SAMPLE_CSV = ROOT / "sample-data" / "sample_playlist.csv"

CANONICAL_HEADER = "offset,media_type,title,artist,album,year"


def run_cli(*args: str, cwd: Path | None = None, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["CUESHEET_OUTPUT_STAMP"] = FIXED_STAMP
    merged_env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), merged_env.get("PYTHONPATH")]))
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd or ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def write_csv(folder: Path, name: str, text: str) -> Path:
    path = folder / name
    path.write_text(text, encoding="utf-8")
    return path


class CueSheetCliImportTests(unittest.TestCase):
    def test_import_sample_writes_sorted_crlf_csv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("import", str(SAMPLE_CSV), "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)

            output = Path(tmpdir) / "sample_playlist.csv"
            self.assertEqual(
                output.read_bytes(),
                (
                    "offset,media_type,title,artist,album,year\r\n"
                    "00:00:00.000,music,Intro Theme,The Openers,Morning Show,2019\r\n"
                    '00:02:00.000,music,"Song with ""quotes""",Band X,Album Y,1999\r\n'
                    '00:03:30.500,talk,"Welcome back, listeners",Host Jane,,\r\n'
                    "00:05:00.000,id,Station ID,,,"
                ).encode("utf-8"),
            )
            summary = json.loads((Path(tmpdir) / "import-summary.json").read_text())
            self.assertEqual(summary["contract"]["name"], "cuesheet.import_summary")
            self.assertEqual(summary["mapping"]["offset"], "Start Time")
            self.assertEqual(summary["run_summary"]["generated_at"], "1970-01-01T00:00:00Z")
            self.assertEqual(summary["run_summary"]["session_name"], "sample_playlist")
            self.assertEqual(summary["run_summary"]["cue_sheet"]["row_count"], 4)
            self.assertEqual(summary["run_summary"]["cue_sheet"]["last_offset"], "00:05:00.000")
            self.assertEqual(summary["run_summary"]["cue_sheet"]["media_types"]["music"], 2)

    def test_import_name_sets_the_file_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("import", str(SAMPLE_CSV), "--out", tmpdir, "--name", "Morning Show")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue((Path(tmpdir) / "Morning-Show.csv").exists())

    def test_import_refuses_to_overwrite_without_force(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "out.csv"
            self.assertEqual(run_cli("import", str(SAMPLE_CSV), "--output", str(output)).returncode, 0)
            proc = run_cli("import", str(SAMPLE_CSV), "--output", str(output))
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Refusing to overwrite", proc.stderr)
            self.assertEqual(run_cli("import", str(SAMPLE_CSV), "--output", str(output), "--force").returncode, 0)

    def test_import_json_stdout_contains_only_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("import", str(SAMPLE_CSV), "--out", tmpdir, "--json")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(proc.stdout)
            self.assertTrue(payload["valid"])
            self.assertEqual(payload["row_count"], 4)
            self.assertEqual(proc.stderr.strip(), "")

    def test_invalid_rows_return_exit_5_and_write_no_csv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "bad.csv", "Time,Title,Artist\n3:45,Song,Band\n00:00:01.000,Other,Band\n")
            out_dir = Path(tmpdir) / "out"
            proc = run_cli("import", str(source), "--out", str(out_dir))
            self.assertEqual(proc.returncode, 5, proc.stderr)
            self.assertIn("Offset must be in HH:MM:SS.mmm format", proc.stderr)
            self.assertFalse((out_dir / "bad.csv").exists())
            summary = json.loads((out_dir / "import-summary.json").read_text())
            self.assertFalse(summary["valid"])
            self.assertIsNone(summary["output"])

    def test_missing_title_mapping_returns_exit_6(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "nothing.csv", "foo,bar\n1,2\n")
            proc = run_cli("import", str(source), "--out", tmpdir)
            self.assertEqual(proc.returncode, 6)
            self.assertIn("Required fields not mapped: title", proc.stderr)

    def test_mapping_file_from_config_init(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            mapping_path = Path(tmpdir) / "mapping.json"
            self.assertEqual(run_cli("config", "init", "--path", str(mapping_path)).returncode, 0)
            source = write_csv(
                Path(tmpdir),
                "show.csv",
                "Time,Type,Title,Artist,Album\n00:00:01.000,ID,Station ID,,\n",
            )
            proc = run_cli("import", str(source), "--mapping", str(mapping_path), "--out", str(Path(tmpdir) / "out"))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue((Path(tmpdir) / "out" / "show.csv").exists())

    def test_mapping_file_rejects_unknown_fields_and_non_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            bad = Path(tmpdir) / "mapping.json"
            bad.write_text(json.dumps({"title": "Title", "color": "Colour"}), encoding="utf-8")
            proc = run_cli("import", str(SAMPLE_CSV), "--mapping", str(bad), "--out", tmpdir)
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Unknown mapping fields: color", proc.stderr)

            yaml_path = Path(tmpdir) / "mapping.yml"
            yaml_path.write_text("title: Title\n", encoding="utf-8")
            proc = run_cli("import", str(SAMPLE_CSV), "--mapping", str(yaml_path), "--out", tmpdir)
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Mapping file must be .json", proc.stderr)

    def test_rerun_into_same_directory_writes_nothing_when_summary_exists(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "show.csv", "When,Type,Title,Artist,Album\n00:00:01.000,ID,Station ID,,\n")
            out_dir = Path(tmpdir) / "out"
            first = run_cli("import", str(source), "--out", str(out_dir))
            self.assertEqual(first.returncode, 5, first.stderr)
            self.assertEqual(sorted(path.name for path in out_dir.iterdir()), ["import-summary.json"])

            mapping_path = Path(tmpdir) / "m.json"
            mapping_path.write_text(
                json.dumps({"offset": "When", "media_type": "Type", "title": "Title", "artist": "Artist", "album": "Album"}),
                encoding="utf-8",
            )
            second = run_cli("import", str(source), "--mapping", str(mapping_path), "--out", str(out_dir))
            self.assertEqual(second.returncode, 1)
            self.assertIn("Refusing to overwrite existing output", second.stderr)
            self.assertEqual(sorted(path.name for path in out_dir.iterdir()), ["import-summary.json"])

            forced = run_cli("import", str(source), "--mapping", str(mapping_path), "--out", str(out_dir), "--force")
            self.assertEqual(forced.returncode, 0, forced.stderr)
            self.assertEqual(sorted(path.name for path in out_dir.iterdir()), ["import-summary.json", "show.csv"])
            summary = json.loads((out_dir / "import-summary.json").read_text())
            self.assertTrue(summary["valid"])
            self.assertEqual(summary["output"], str(out_dir / "show.csv"))

    def test_unsupported_extension_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "notes.txt", "title\nA\n")
            proc = run_cli("import", str(source), "--out", tmpdir)
            self.assertEqual(proc.returncode, 1)
            self.assertIn("Invalid file type", proc.stderr)

    def test_unreadable_workbook_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "broken.xlsx"
            source.write_bytes(b"this is not a workbook")
            proc = run_cli("import", str(source), "--out", tmpdir)
            self.assertEqual(proc.returncode, 2)
            self.assertIn("The file may be corrupted", proc.stderr)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("import", "does-not-exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_default_output_directory_uses_stamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("import", str(SAMPLE_CSV), cwd=Path(tmpdir))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            output_dir = Path(tmpdir) / "cue-sheet-output" / f"sample_playlist-{FIXED_STAMP}"
            self.assertTrue((output_dir / "sample_playlist.csv").exists())
            self.assertTrue((output_dir / "import-summary.json").exists())


class CueSheetCliOtherCommandTests(unittest.TestCase):
    def test_map_reports_auto_mapping(self):
        proc = run_cli("map", str(SAMPLE_CSV), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "cuesheet.mapping")
        self.assertEqual(
            payload["mapping"],
            {
                "offset": "Start Time",
                "media_type": "Category",
                "title": "Song Title",
                "artist": "Performer",
                "album": "Record",
                "year": "Released",
            },
        )
        self.assertTrue(payload["export_check"]["complete"])

    def test_validate_canonical_csv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "show.csv", f"{CANONICAL_HEADER}\n00:00:00.000,MUSIC,Song,Band,,\n")
            proc = run_cli("validate", str(source))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Valid: True", proc.stderr)

    def test_validate_reports_duplicate_offsets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(
                Path(tmpdir),
                "show.csv",
                f"{CANONICAL_HEADER}\n00:00:00.000,music,A,Band,,\n00:00:00.000,id,B,,,\n",
            )
            proc = run_cli("validate", str(source), "--json")
            self.assertEqual(proc.returncode, 5)
            payload = json.loads(proc.stdout)
            self.assertEqual([error["kind"] for error in payload["errors"]], ["duplicate", "duplicate"])
            self.assertEqual(payload["contract"]["name"], "cuesheet.validation")

    def test_validate_missing_columns_returns_exit_6(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "show.csv", "offset,title\n00:00:00.000,Song\n")
            proc = run_cli("validate", str(source), "--json")
            self.assertEqual(proc.returncode, 6)
            self.assertEqual(json.loads(proc.stdout)["missing_columns"], ["media_type", "artist", "album"])

    def test_export_reserialises_canonical_csv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(
                Path(tmpdir),
                "show.csv",
                f"{CANONICAL_HEADER}\n00:00:05.000,Promo,Later,,,\n00:00:01.000,music,\"Hello, World\",Band,,2001\n",
            )
            output = Path(tmpdir) / "export" / "final.csv"
            proc = run_cli("export", str(source), "--output", str(output))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertEqual(
                output.read_bytes(),
                b'offset,media_type,title,artist,album,year\r\n00:00:01.000,music,"Hello, World",Band,,2001\r\n00:00:05.000,promo,Later,,,',
            )

    def test_export_invalid_returns_exit_5(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(Path(tmpdir), "show.csv", f"{CANONICAL_HEADER}\n00:00:00.000,music,,Band,,\n")
            proc = run_cli("export", str(source), "--out", tmpdir)
            self.assertEqual(proc.returncode, 5)
            self.assertIn("Cannot export: 1 error(s) found", proc.stderr)

    def test_explain_known_rule(self):
        proc = run_cli("explain", "offset_duplicate", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["kind"], "duplicate")

    def test_explain_unknown_rule(self):
        proc = run_cli("explain", "no_such_rule")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown rule id", proc.stderr)

    def test_config_init_refuses_to_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "mapping.json"
            self.assertEqual(run_cli("config", "init", "--path", str(path)).returncode, 0)
            self.assertEqual(json.loads(path.read_text())["title"], "Title")
            proc = run_cli("config", "init", "--path", str(path))
            self.assertEqual(proc.returncode, 1)

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_bad_arguments_return_exit_1(self):
        proc = run_cli("bogus")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()

import unittest

from cuesheet.mapping import (
    MAPPING_FIELDS,
    apply_mapping,
    auto_map,
    check_import_mapping_complete,
    check_mapping_complete,
    empty_mapping,
)
from cuesheet.models import FIELDS


class AutoMapTests(unittest.TestCase):
    def test_canonical_headers_map_exactly(self):
        headers = ["Time", "Type", "Title", "Artist", "Album", "Year"]
        self.assertEqual(
            auto_map(headers),
            {
                "offset": "Time",
                "media_type": "Type",
                "title": "Title",
                "artist": "Artist",
                "album": "Album",
                "year": "Year",
            },
        )

    def test_exact_match_ignores_case_and_whitespace_but_keeps_original_text(self):
        mapping = auto_map(["  OFFSET ", "Song"])
        self.assertEqual(mapping["offset"], "  OFFSET ")
        self.assertEqual(mapping["title"], "Song")

    def test_partial_pass_fills_remaining_fields(self):
        mapping = auto_map(["Title", "Artist Name", "album_title", "Type"])
        self.assertEqual(mapping["title"], "Title")
        self.assertEqual(mapping["album"], "album_title")
        self.assertEqual(mapping["media_type"], "Type")
        self.assertEqual(mapping["artist"], "Artist Name")
        self.assertIsNone(mapping["offset"])
        self.assertIsNone(mapping["year"])

    def test_first_matching_header_wins(self):
        self.assertEqual(auto_map(["Title", "Song"])["title"], "Title")

    def test_header_is_claimed_at_most_once_in_partial_pass(self):
        mapping = auto_map(["Track Time"])
        self.assertEqual(mapping["offset"], "Track Time")
        self.assertIsNone(mapping["title"])

    def test_exact_pass_runs_before_partial_pass(self):
        # "Song Title" would partially match title, but the exact "Track" wins.
        mapping = auto_map(["Song Title", "Track"])
        self.assertEqual(mapping["title"], "Track")

    def test_unrecognised_headers_stay_unmapped(self):
        self.assertEqual(auto_map(["foo", "bar"]), empty_mapping())


class CompletenessTests(unittest.TestCase):
    def test_export_ready_needs_everything_but_year(self):
        self.assertEqual(
            check_mapping_complete(empty_mapping()),
            {"complete": False, "missing": ["offset", "media_type", "title", "artist", "album"]},
        )
        mapping = {field: field for field in FIELDS}
        mapping["year"] = None
        self.assertEqual(check_mapping_complete(mapping), {"complete": True, "missing": []})

    def test_import_minimum_needs_title_only(self):
        self.assertEqual(check_import_mapping_complete({"title": "Song"}), {"complete": True, "missing": []})
        self.assertEqual(check_import_mapping_complete(empty_mapping()), {"complete": False, "missing": ["title"]})

    def test_mapping_fields_describe_every_field(self):
        self.assertEqual([item["key"] for item in MAPPING_FIELDS], FIELDS)
        required = [item["key"] for item in MAPPING_FIELDS if item["required"]]
        self.assertEqual(required, ["title"])


class ApplyMappingTests(unittest.TestCase):
    def test_cells_are_trimmed_and_media_type_normalised(self):
        table = {
            "headers": ["Song", "Kind", "When"],
            "rows": [["  A  ", "MUSIC", "00:00:01.000"], ["B", "jingle"]],
        }
        rows = apply_mapping(table, {"title": "song", "media_type": "KIND", "offset": " When "})

        self.assertEqual(len(rows), 2)
        self.assertEqual((rows[0].title, rows[0].media_type, rows[0].offset), ("A", "music", "00:00:01.000"))
        self.assertEqual(rows[1].media_type, "jingle")
        self.assertEqual(rows[1].offset, "")
        self.assertEqual(rows[1].artist, "")

    def test_unknown_source_header_leaves_defaults(self):
        rows = apply_mapping({"headers": ["a"], "rows": [["x"]]}, {"title": "Nope"})
        self.assertEqual(rows[0].title, "")
        self.assertEqual(rows[0].media_type, "music")

    def test_every_row_gets_a_distinct_id(self):
        table = {"headers": ["title"], "rows": [["a"], ["b"], ["c"]]}
        ids = [row.id for row in apply_mapping(table, {"title": "title"})]
        self.assertEqual(len(set(ids)), 3)
        self.assertTrue(all(ids))


if __name__ == "__main__":
    unittest.main()

import io
import unittest
from contextlib import redirect_stderr

from cuesheet.models import Row
from cuesheet.store import CueSheetStore


class StoreMutationTests(unittest.TestCase):
    def setUp(self):
        self.store = CueSheetStore()

    def test_add_row_applies_defaults_and_returns_a_copy(self):
        row = self.store.add_row({"title": "Song"})
        self.assertEqual(row.media_type, "music")
        self.assertEqual(row.offset, "")
        self.assertTrue(row.id)

        row.title = "changed outside"
        self.assertEqual(self.store.get_row(row.id).title, "Song")

    def test_add_row_ignores_caller_supplied_id(self):
        row = self.store.add_row({"id": "fixed", "title": "Song"})
        self.assertNotEqual(row.id, "fixed")

    def test_get_rows_returns_copies(self):
        self.store.add_row({"title": "Song"})
        rows = self.store.get_rows()
        rows[0].title = "mutated"
        rows.clear()
        self.assertEqual(self.store.get_rows()[0].title, "Song")

    def test_insert_row_before_defaults_to_talk(self):
        first = self.store.add_row({"title": "A"})
        second = self.store.add_row({"title": "B"})
        inserted = self.store.insert_row_before(second.id, {})

        self.assertEqual(inserted.media_type, "talk")
        self.assertEqual([row.id for row in self.store.get_rows()], [first.id, inserted.id, second.id])

    def test_insert_before_unknown_row_appends(self):
        first = self.store.add_row({"title": "A"})
        inserted = self.store.insert_row_before("missing", {"title": "B"})
        self.assertEqual([row.id for row in self.store.get_rows()], [first.id, inserted.id])

    def test_update_row_only_touches_known_fields(self):
        row = self.store.add_row({"title": "A"})
        self.assertTrue(self.store.update_row(row.id, {"title": "B", "id": "other", "color": "red"}))
        updated = self.store.get_row(row.id)
        self.assertEqual(updated.title, "B")
        self.assertEqual(updated.id, row.id)

    def test_update_and_delete_missing_row(self):
        self.assertFalse(self.store.update_row("missing", {"title": "B"}))
        self.assertFalse(self.store.delete_row("missing"))

    def test_delete_row(self):
        row = self.store.add_row({"title": "A"})
        self.assertTrue(self.store.delete_row(row.id))
        self.assertFalse(self.store.has_rows())
        self.assertEqual(self.store.get_row_index(row.id), -1)

    def test_import_rows_replaces_and_keeps_ids(self):
        self.store.add_row({"title": "old"})
        incoming = [Row(title="new 1"), Row(title="new 2")]
        self.store.import_rows(incoming)
        self.assertEqual([row.id for row in self.store.get_rows()], [row.id for row in incoming])
        self.assertEqual(self.store.row_count(), 2)

    def test_file_name_is_sanitised(self):
        self.store.set_file_name("My Show: Live")
        self.assertEqual(self.store.file_name, "My-Show-Live")

    def test_unsaved_changes_flag(self):
        self.assertFalse(self.store.has_unsaved_changes())
        self.store.add_row({"title": "A"})
        self.assertTrue(self.store.has_unsaved_changes())
        self.store.mark_saved()
        self.assertFalse(self.store.has_unsaved_changes())
        self.store.add_row({"title": "B"})
        self.store.clear_all_rows()
        self.assertFalse(self.store.has_unsaved_changes())

    def test_reset(self):
        self.store.set_file_name("show")
        self.store.add_row({"title": "A"})
        self.store.reset()
        self.assertEqual(self.store.file_name, "")
        self.assertEqual(self.store.row_count(), 0)


class StoreSubscriptionTests(unittest.TestCase):
    def test_listeners_get_the_changed_key(self):
        store = CueSheetStore()
        seen: list[str] = []
        unsubscribe = store.subscribe(seen.append)

        row = store.add_row({"title": "A"})
        store.update_row(row.id, {"title": "B"})
        store.set_file_name("show")
        store.reset()
        unsubscribe()
        store.add_row({"title": "C"})

        self.assertEqual(seen, ["rows", "rows", "file_name", "reset"])

    def test_failing_listener_does_not_stop_the_others(self):
        store = CueSheetStore()
        seen: list[str] = []

        def broken(key: str) -> None:
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(seen.append)

        stderr = io.StringIO()
        with redirect_stderr(stderr):
            store.add_row({"title": "A"})

        self.assertEqual(seen, ["rows"])
        self.assertIn("Store listener error (rows): boom", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest

from intervallog.errors import StorageError, ValidationError
from intervallog.storage import SessionStore, sanitize_folder_name, validate_path_component
from intervallog.tests.test_helpers import local_tmp_dir


class TestSessionStore(unittest.TestCase):
    def test_folders_are_created_sanitized_and_listed(self) -> None:
        with local_tmp_dir() as tmp:
            store = SessionStore(tmp / "work_sessions")

            self.assertEqual(store.list_folders(), [])
            self.assertEqual(store.create_folder("  client work!  "), "client_work_")
            self.assertEqual(store.create_folder("alpha"), "alpha")
            store.create_folder("alpha")

            self.assertEqual(store.list_folders(), ["alpha", "client_work_"])
            self.assertTrue((tmp / "work_sessions" / "client_work_").is_dir())

    def test_count_only_markdown_files(self) -> None:
        with local_tmp_dir() as tmp:
            store = SessionStore(tmp)
            self.assertEqual(store.count_session_files("missing"), 0)

            folder = tmp / "alpha"
            folder.mkdir()
            (folder / "session_1_2026-02-13.md").write_text("# one", encoding="utf-8")
            (folder / "session_2_2026-02-14.md").write_text("# two", encoding="utf-8")
            (folder / "notes.txt").write_text("skip", encoding="utf-8")
            (folder / "nested.md").mkdir()

            self.assertEqual(store.count_session_files("alpha"), 2)

    def test_write_session_file(self) -> None:
        with local_tmp_dir() as tmp:
            store = SessionStore(tmp)

            path = store.write_session_file("alpha", "session_1_2026-02-13.md", "# Work Session #1\n")

            self.assertEqual(path, tmp / "alpha" / "session_1_2026-02-13.md")
            self.assertEqual(path.read_text(encoding="utf-8"), "# Work Session #1\n")
            self.assertEqual([p.name for p in (tmp / "alpha").iterdir()], ["session_1_2026-02-13.md"])

            store.write_session_file("alpha", "session_1_2026-02-13.md", "# replaced\n")
            self.assertEqual(path.read_text(encoding="utf-8"), "# replaced\n")

    def test_write_rejects_bad_input(self) -> None:
        with local_tmp_dir() as tmp:
            store = SessionStore(tmp)

            with self.assertRaises(ValidationError):
                store.write_session_file("../outside", "session_1.md", "x")
            with self.assertRaises(ValidationError):
                store.write_session_file("alpha", "a/b.md", "x")
            with self.assertRaises(ValidationError):
                store.write_session_file("alpha", "session_1.md", "")
            self.assertFalse((tmp / "alpha").exists())

    def test_root_that_is_a_file_raises_storage_error(self) -> None:
        with local_tmp_dir() as tmp:
            blocker = tmp / "not_a_dir"
            blocker.write_text("x", encoding="utf-8")

            with self.assertRaises(StorageError):
                SessionStore(blocker).list_folders()


class TestPathRules(unittest.TestCase):
    def test_sanitize(self) -> None:
        self.assertEqual(sanitize_folder_name("my project.v2"), "my_project_v2")
        self.assertEqual(sanitize_folder_name("ok-name_1"), "ok-name_1")
        with self.assertRaises(ValidationError):
            sanitize_folder_name("   ")

    def test_validate_path_component(self) -> None:
        self.assertEqual(validate_path_component(" alpha ", field_name="folder"), "alpha")
        for bad in ("", "..", ".", "a/b", "a\\b"):
            with self.assertRaises(ValidationError):
                validate_path_component(bad, field_name="folder")


if __name__ == "__main__":
    unittest.main()

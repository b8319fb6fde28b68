from __future__ import annotations

import importlib
import sqlite3
import sys
import tempfile
import unittest
from pathlib import Path


def load_db():
    sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
    return importlib.import_module("notekeeper.db")


class DatabaseSchemaTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_module = load_db()
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "nested" / "notes.sqlite3"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_initialise_creates_schema(self) -> None:
        database = self.db_module.Database(self.path)
        database.initialise()
        self.addCleanup(database.close)

        self.assertTrue(self.path.exists())
        self.assertEqual(database.schema_version(), self.db_module.SCHEMA_VERSION)
        with database.cursor() as cur:
            cur.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            tables = {row["name"] for row in cur.fetchall()}
            cur.execute("PRAGMA foreign_keys")
            foreign_keys = cur.fetchone()[0]
        self.assertTrue({"meta", "categories", "subcategories", "notes"} <= tables)
        self.assertEqual(foreign_keys, 1)

    def test_initialise_is_repeatable(self) -> None:
        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        database.initialise()
        database.initialise()
        self.assertEqual(database.schema_version(), self.db_module.SCHEMA_VERSION)

    def test_fresh_database_has_indexes_and_current_version(self) -> None:
        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        database.initialise()

        with database.cursor() as cur:
            cur.execute("SELECT name FROM sqlite_master WHERE type = 'index' AND name LIKE 'idx_%'")
            indexes = {row["name"] for row in cur.fetchall()}
        self.assertEqual(
            indexes,
            {
                "idx_subcategories_category",
                "idx_notes_category",
                "idx_notes_subcategory",
                "idx_notes_updated_at",
            },
        )
        self.assertEqual(database.schema_version(), 1)

    def test_newer_schema_version_is_left_alone(self) -> None:
        self.path.parent.mkdir(parents=True)
        raw = sqlite3.connect(self.path)
        raw.executescript(self.db_module.BASE_SQL)
        raw.execute("INSERT INTO meta (key, value) VALUES ('schema_version', '7')")
        raw.commit()
        raw.close()

        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        database.initialise()

        self.assertEqual(database.schema_version(), 7)

    def test_foreign_keys_reject_dangling_subcategory(self) -> None:
        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        database.initialise()
        with self.assertRaises(sqlite3.IntegrityError):
            with database.cursor() as cur:
                cur.execute(
                    "INSERT INTO subcategories (id, name, category_id, created_at, updated_at) "
                    "VALUES ('s1', 'Orphan', 'missing', 'x', 'x')"
                )

    def test_transaction_groups_cursor_blocks(self) -> None:
        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        database.initialise()
        with self.assertRaises(RuntimeError):
            with database.transaction():
                self.assertTrue(database.in_transaction)
                with database.cursor() as cur:
                    cur.execute(
                        "INSERT INTO categories (id, name, created_at, updated_at) VALUES ('c1', 'Work', 'x', 'x')"
                    )
                raise RuntimeError("abort")
        self.assertFalse(database.in_transaction)
        with database.cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM categories")
            self.assertEqual(cur.fetchone()[0], 0)

    def test_casefold_function_is_registered(self) -> None:
        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        with database.cursor() as cur:
            cur.execute("SELECT casefold('ÉCOLE Straße')")
            self.assertEqual(cur.fetchone()[0], "école strasse")

    def test_clear_removes_all_rows(self) -> None:
        database = self.db_module.Database(self.path)
        self.addCleanup(database.close)
        database.initialise()
        with database.cursor() as cur:
            cur.execute("INSERT INTO categories (id, name, created_at, updated_at) VALUES ('c1', 'Work', 'x', 'x')")
        database.clear()
        with database.cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM categories")
            self.assertEqual(cur.fetchone()[0], 0)


if __name__ == "__main__":
    unittest.main()

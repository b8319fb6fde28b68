"""SQLite database wrapper for the application."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .data_paths import db_path
from .logger import configure_logging

_LOG = configure_logging()

SCHEMA_VERSION = 1

BASE_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color_hex TEXT NOT NULL DEFAULT '007AFF',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS subcategories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color_hex TEXT NOT NULL DEFAULT '007AFF',
    category_id TEXT NOT NULL REFERENCES categories(id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notes (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    category_id TEXT REFERENCES categories(id),
    subcategory_id TEXT REFERENCES subcategories(id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_subcategories_category ON subcategories(category_id);
CREATE INDEX IF NOT EXISTS idx_notes_category ON notes(category_id);
CREATE INDEX IF NOT EXISTS idx_notes_subcategory ON notes(subcategory_id);
CREATE INDEX IF NOT EXISTS idx_notes_updated_at ON notes(updated_at);
"""


def _casefold(value: object) -> object:
    return value.casefold() if isinstance(value, str) else value


class Database:
    """Lightweight SQLite manager with a versioned schema."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or db_path()
        self._connection: Optional[sqlite3.Connection] = None
        self._in_transaction = False

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            _LOG.info("Opening database at %s", self.path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.path)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON;")
            self._connection.create_function("casefold", 1, _casefold, deterministic=True)
        return self._connection

    @contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        conn = self.connect()
        cur = conn.cursor()
        try:
            yield cur
            if not self._in_transaction:
                conn.commit()
        except Exception:
            if not self._in_transaction:
                conn.rollback()
            raise
        finally:
            cur.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group every ``cursor()`` block inside into a single commit."""
        if self._in_transaction:
            yield
            return
        conn = self.connect()
        self._in_transaction = True
        try:
            yield
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def initialise(self) -> None:
        with self.cursor() as cur:
            cur.executescript(BASE_SQL)
            cur.executescript(SCHEMA_SQL)
            version = self._schema_version(cur)
            if version is None:
                cur.execute(
                    "INSERT INTO meta (key, value) VALUES (?, ?)",
                    ("schema_version", str(SCHEMA_VERSION)),
                )
            elif version > SCHEMA_VERSION:
                _LOG.warning(
                    "Database schema version %s is newer than supported version %s",
                    version,
                    SCHEMA_VERSION,
                )

    def schema_version(self) -> Optional[int]:
        with self.cursor() as cur:
            return self._schema_version(cur)

    def clear(self) -> None:
        with self.cursor() as cur:
            cur.execute("DELETE FROM notes")
            cur.execute("DELETE FROM subcategories")
            cur.execute("DELETE FROM categories")

    def close(self) -> None:
        if self._connection is not None:
            _LOG.info("Closing database")
            self._connection.close()
            self._connection = None

    # ------------------------------------------------------------------
    # Schema helpers
    # ------------------------------------------------------------------
    def _schema_version(self, cur: sqlite3.Cursor) -> Optional[int]:
        cur.execute("SELECT value FROM meta WHERE key = 'schema_version'")
        row = cur.fetchone()
        if row is None:
            return None
        try:
            return int(row["value"])
        except (TypeError, ValueError):  # pragma: no cover
            return None


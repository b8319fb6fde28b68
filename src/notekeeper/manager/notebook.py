"""Category, subcategory and note persistence."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

from ..db import Database
from ..errors import NotFoundError, StorageError, ValidationError
from ..events import ChangeNotifier, EntityKind, Topic
from ..logger import configure_logging
from ..palette import DEFAULT_HEX, coerce_hex
from .models import Category, Note, NoteCounts, SubCategory
from .query import NoteQuery

_LOG = configure_logging()


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

_NOTE_SELECT = """
SELECT n.id, n.title, n.content, n.category_id, n.subcategory_id, n.created_at, n.updated_at,
       c.name AS category_name, s.name AS subcategory_name
  FROM notes AS n
  LEFT JOIN categories AS c ON c.id = n.category_id
  LEFT JOIN subcategories AS s ON s.id = n.subcategory_id
"""


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse ISO-8601 text into an aware UTC datetime.

    Raises ``ValueError`` for text that does not parse or whose UTC
    equivalent falls outside the supported date range.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except OverflowError as exc:
        raise ValueError(f"Timestamp out of range: {value}") from exc


def format_timestamp(value: datetime) -> str:
    """Store UTC with fixed precision so text ordering matches time ordering."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} must not be empty")
    return str(value).strip()


class NotebookManager:
    """High-level API over the notes database.

    Every committed mutation publishes a :class:`~notekeeper.events.ChangeEvent`
    on :attr:`notifier`. Callers never cascade by hand: deleting a
    subcategory moves its notes to the parent category and deleting a
    category leaves its notes unlisted.
    """

    def __init__(self, database: Optional[Database] = None, notifier: Optional[ChangeNotifier] = None) -> None:
        self.db = database or Database()
        self.db.initialise()
        self.notifier = notifier or ChangeNotifier()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _storage(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            _LOG.error("Storage failure while trying to %s: %s", action, exc)
            raise StorageError(f"Failed to {action}: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit every mutation inside as one unit and batch their events."""
        with self.notifier.suspend(), self._storage("commit changes"), self.db.transaction():
            yield

    def _fetchall(self, sql: str, params: Sequence[Any] = (), action: str = "read notebook") -> List[sqlite3.Row]:
        with self._storage(action), self.db.cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchall()

    def _fetchone(self, sql: str, params: Sequence[Any] = (), action: str = "read notebook") -> Optional[sqlite3.Row]:
        with self._storage(action), self.db.cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchone()

    def _fresh_id(self, table: str, candidate: Optional[str]) -> str:
        if candidate:
            try:
                normalized = str(uuid.UUID(str(candidate)))
            except ValueError:
                normalized = None
            if normalized and self._fetchone(f"SELECT 1 FROM {table} WHERE id = ?", (normalized,)) is None:
                return normalized
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def list_categories(self) -> List[Category]:
        rows = self._fetchall(
            "SELECT id, name, color_hex, created_at, updated_at FROM categories ORDER BY casefold(name), id"
        )
        return [self._row_to_category(row) for row in rows]

    def get_category(self, category_id: str) -> Category:
        row = self._fetchone(
            "SELECT id, name, color_hex, created_at, updated_at FROM categories WHERE id = ?",
            (category_id,),
        )
        if row is None:
            msg = f"Category {category_id} not found"
            raise NotFoundError(msg)
        return self._row_to_category(row)

    def find_category_by_name(self, name: str) -> Optional[Category]:
        row = self._fetchone(
            "SELECT id, name, color_hex, created_at, updated_at FROM categories "
            "WHERE name = ? ORDER BY created_at, id LIMIT 1",
            (name,),
        )
        return self._row_to_category(row) if row else None

    def create_category(
        self,
        name: str,
        color_hex: Optional[str] = None,
        *,
        entity_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> Category:
        name = _require_text(name, "Category name")
        color = coerce_hex(color_hex)
        now = utc_now()
        category_id = self._fresh_id("categories", entity_id)
        with self._storage("create category"), self.db.cursor() as cur:
            cur.execute(
                "INSERT INTO categories (id, name, color_hex, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (category_id, name, color, format_timestamp(created_at or now), format_timestamp(updated_at or now)),
            )
        _LOG.info("Created category %r (%s)", name, category_id)
        self.notifier.emit(Topic.CATEGORY_CHANGED, EntityKind.CATEGORY, category_id, name=name, color_hex=color)
        return self.get_category(category_id)

    def update_category(
        self,
        category_id: str,
        *,
        name: Optional[str] = None,
        color_hex: Optional[str] = None,
        touch: bool = True,
    ) -> Category:
        """Rename or recolour; ``touch=False`` keeps ``updated_at`` (used by import)."""
        current = self.get_category(category_id)
        new_name = _require_text(name, "Category name") if name is not None else current.name
        new_color = coerce_hex(color_hex) if color_hex is not None else current.color_hex
        stamp = format_timestamp(utc_now() if touch else current.updated_at)
        with self._storage("update category"), self.db.cursor() as cur:
            cur.execute(
                "UPDATE categories SET name = ?, color_hex = ?, updated_at = ? WHERE id = ?",
                (new_name, new_color, stamp, category_id),
            )
        _LOG.debug("Updated category %s", category_id)
        self.notifier.emit(
            Topic.CATEGORY_CHANGED, EntityKind.CATEGORY, category_id, name=new_name, color_hex=new_color
        )
        return self.get_category(category_id)

    def delete_category(self, category_id: str) -> int:
        """Delete a category and its subcategories; return how many notes became unlisted."""
        category = self.get_category(category_id)
        now = format_timestamp(utc_now())
        with self.transaction():
            with self._storage("delete category"), self.db.cursor() as cur:
                cur.execute("SELECT id FROM notes WHERE category_id = ?", (category_id,))
                note_ids = [row["id"] for row in cur.fetchall()]
                cur.execute("SELECT id FROM subcategories WHERE category_id = ?", (category_id,))
                subcategory_ids = [row["id"] for row in cur.fetchall()]
                cur.execute(
                    "UPDATE notes SET category_id = NULL, subcategory_id = NULL, updated_at = ? WHERE category_id = ?",
                    (now, category_id),
                )
                cur.execute("DELETE FROM subcategories WHERE category_id = ?", (category_id,))
                cur.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            for note_id in note_ids:
                self.notifier.emit(Topic.NOTE_CHANGED, EntityKind.NOTE, note_id, category_id=None)
            for subcategory_id in subcategory_ids:
                self.notifier.emit(
                    Topic.SUBCATEGORY_DELETED, EntityKind.SUBCATEGORY, subcategory_id, category_id=category_id
                )
            self.notifier.emit(Topic.CATEGORY_DELETED, EntityKind.CATEGORY, category_id, name=category.name)
        _LOG.info(
            "Deleted category %r with %s subcategories; %s notes now unlisted",
            category.name,
            len(subcategory_ids),
            len(note_ids),
        )
        return len(note_ids)

    # ------------------------------------------------------------------
    # Subcategories
    # ------------------------------------------------------------------
    def list_subcategories(self, category_id: Optional[str] = None) -> List[SubCategory]:
        sql = "SELECT id, name, color_hex, category_id, created_at, updated_at FROM subcategories"
        params: List[str] = []
        if category_id is not None:
            sql += " WHERE category_id = ?"
            params.append(category_id)
        sql += " ORDER BY casefold(name), id"
        return [self._row_to_subcategory(row) for row in self._fetchall(sql, params)]

    def get_subcategory(self, subcategory_id: str) -> SubCategory:
        row = self._fetchone(
            "SELECT id, name, color_hex, category_id, created_at, updated_at FROM subcategories WHERE id = ?",
            (subcategory_id,),
        )
        if row is None:
            msg = f"Subcategory {subcategory_id} not found"
            raise NotFoundError(msg)
        return self._row_to_subcategory(row)

    def find_subcategory(self, name: str, category_id: str) -> Optional[SubCategory]:
        row = self._fetchone(
            "SELECT id, name, color_hex, category_id, created_at, updated_at FROM subcategories "
            "WHERE name = ? AND category_id = ? ORDER BY created_at, id LIMIT 1",
            (name, category_id),
        )
        return self._row_to_subcategory(row) if row else None

    def create_subcategory(
        self,
        name: str,
        category_id: str,
        color_hex: Optional[str] = None,
        *,
        entity_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> SubCategory:
        name = _require_text(name, "Subcategory name")
        parent = self._require_category(category_id)
        color = coerce_hex(color_hex, fallback=parent.color_hex)
        now = utc_now()
        subcategory_id = self._fresh_id("subcategories", entity_id)
        with self._storage("create subcategory"), self.db.cursor() as cur:
            cur.execute(
                """
                INSERT INTO subcategories (id, name, color_hex, category_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    subcategory_id,
                    name,
                    color,
                    parent.id,
                    format_timestamp(created_at or now),
                    format_timestamp(updated_at or now),
                ),
            )
        _LOG.info("Created subcategory %r under %r", name, parent.name)
        self.notifier.emit(
            Topic.SUBCATEGORY_CHANGED,
            EntityKind.SUBCATEGORY,
            subcategory_id,
            name=name,
            color_hex=color,
            category_id=parent.id,
        )
        return self.get_subcategory(subcategory_id)

    def update_subcategory(
        self,
        subcategory_id: str,
        *,
        name: Optional[str] = None,
        color_hex: Optional[str] = None,
        category_id: Optional[str] = None,
        touch: bool = True,
    ) -> SubCategory:
        """Rename, recolour or move a subcategory; its notes follow a move.

        ``touch=False`` keeps the subcategory's ``updated_at`` (used by import).
        """
        current = self.get_subcategory(subcategory_id)
        new_name = _require_text(name, "Subcategory name") if name is not None else current.name
        new_color = coerce_hex(color_hex) if color_hex is not None else current.color_hex
        new_parent = current.category_id
        if category_id is not None and category_id != current.category_id:
            new_parent = self._require_category(category_id).id
        now = format_timestamp(utc_now())
        stamp = now if touch else format_timestamp(current.updated_at)
        with self.transaction():
            with self._storage("update subcategory"), self.db.cursor() as cur:
                cur.execute(
                    "UPDATE subcategories SET name = ?, color_hex = ?, category_id = ?, updated_at = ? WHERE id = ?",
                    (new_name, new_color, new_parent, stamp, subcategory_id),
                )
                if new_parent != current.category_id:
                    cur.execute(
                        "UPDATE notes SET category_id = ?, updated_at = ? WHERE subcategory_id = ?",
                        (new_parent, now, subcategory_id),
                    )
            self.notifier.emit(
                Topic.SUBCATEGORY_CHANGED,
                EntityKind.SUBCATEGORY,
                subcategory_id,
                name=new_name,
                color_hex=new_color,
                category_id=new_parent,
            )
        return self.get_subcategory(subcategory_id)

    def delete_subcategory(self, subcategory_id: str) -> int:
        """Delete a subcategory; its notes move to the parent category. Returns the moved count."""
        subcategory = self.get_subcategory(subcategory_id)
        now = format_timestamp(utc_now())
        with self.transaction():
            with self._storage("delete subcategory"), self.db.cursor() as cur:
                cur.execute("SELECT id FROM notes WHERE subcategory_id = ?", (subcategory_id,))
                note_ids = [row["id"] for row in cur.fetchall()]
                cur.execute(
                    "UPDATE notes SET subcategory_id = NULL, category_id = ?, updated_at = ? WHERE subcategory_id = ?",
                    (subcategory.category_id, now, subcategory_id),
                )
                cur.execute("DELETE FROM subcategories WHERE id = ?", (subcategory_id,))
            for note_id in note_ids:
                self.notifier.emit(Topic.NOTE_CHANGED, EntityKind.NOTE, note_id, category_id=subcategory.category_id)
            self.notifier.emit(
                Topic.SUBCATEGORY_DELETED,
                EntityKind.SUBCATEGORY,
                subcategory_id,
                name=subcategory.name,
                category_id=subcategory.category_id,
            )
        _LOG.info("Deleted subcategory %r; moved %s notes to its category", subcategory.name, len(note_ids))
        return len(note_ids)

    # ------------------------------------------------------------------
    # Category / subcategory edit sheet
    # ------------------------------------------------------------------
    def edit_container(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        name: Optional[str] = None,
        color_hex: Optional[str] = None,
        delete: bool = False,
    ) -> Optional[Union[Category, SubCategory]]:
        """Rename, recolour or delete a category or subcategory.

        Returns the updated entity, or ``None`` after a delete.
        """
        if kind is EntityKind.CATEGORY:
            if delete:
                self.delete_category(entity_id)
                return None
            return self.update_category(entity_id, name=name, color_hex=color_hex)
        if kind is EntityKind.SUBCATEGORY:
            if delete:
                self.delete_subcategory(entity_id)
                return None
            return self.update_subcategory(entity_id, name=name, color_hex=color_hex)
        msg = f"{kind.value} is not a category or subcategory"
        raise ValidationError(msg)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------
    def fetch_notes(self, query: Optional[NoteQuery] = None) -> List[Note]:
        where, order_by, params = (query or NoteQuery()).to_sql("n")
        rows = self._fetchall(f"{_NOTE_SELECT} WHERE {where} ORDER BY {order_by}", params, "query notes")
        return [self._row_to_note(row) for row in rows]

    def count_notes(self, query: Optional[NoteQuery] = None) -> int:
        where, _order_by, params = (query or NoteQuery()).to_sql("n")
        row = self._fetchone(f"SELECT COUNT(*) FROM notes AS n WHERE {where}", params, "count notes")
        return int(row[0]) if row else 0

    def get_note(self, note_id: str) -> Note:
        row = self._fetchone(f"{_NOTE_SELECT} WHERE n.id = ?", (note_id,))
        if row is None:
            msg = f"Note {note_id} not found"
            raise NotFoundError(msg)
        return self._row_to_note(row)

    def find_note(self, title: str, category_id: Optional[str], subcategory_id: Optional[str]) -> Optional[Note]:
        row = self._fetchone(
            f"{_NOTE_SELECT} WHERE n.title = ? AND n.category_id IS ? AND n.subcategory_id IS ? "
            "ORDER BY n.created_at, n.id LIMIT 1",
            (title, category_id, subcategory_id),
        )
        return self._row_to_note(row) if row else None

    def create_note(
        self,
        title: str,
        content: str = "",
        category_id: Optional[str] = None,
        subcategory_id: Optional[str] = None,
        *,
        entity_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> Note:
        title = _require_text(title, "Note title")
        placed_category, placed_subcategory = self._resolve_placement(None, None, category_id, subcategory_id)
        now = utc_now()
        note_id = self._fresh_id("notes", entity_id)
        with self._storage("create note"), self.db.cursor() as cur:
            cur.execute(
                """
                INSERT INTO notes (id, title, content, category_id, subcategory_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    note_id,
                    title,
                    content or "",
                    placed_category,
                    placed_subcategory,
                    format_timestamp(created_at or now),
                    format_timestamp(updated_at or now),
                ),
            )
        _LOG.debug("Created note %s", note_id)
        self.notifier.emit(Topic.NOTE_CHANGED, EntityKind.NOTE, note_id, title=title, category_id=placed_category)
        return self.get_note(note_id)

    def update_note(
        self,
        note_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        category_id: Any = UNSET,
        subcategory_id: Any = UNSET,
    ) -> Note:
        """Update a note; ``category_id=None`` moves it to the unlisted notes.

        A subcategory given without a category pulls the note into that
        subcategory's parent. A subcategory that belongs to another category
        than the one given is dropped.
        """
        current = self.get_note(note_id)
        new_title = _require_text(title, "Note title") if title is not None else current.title
        new_content = content if content is not None else current.content
        placed_category, placed_subcategory = self._resolve_placement(
            current.category_id, current.subcategory_id, category_id, subcategory_id
        )
        with self._storage("update note"), self.db.cursor() as cur:
            cur.execute(
                """
                UPDATE notes
                   SET title = ?, content = ?, category_id = ?, subcategory_id = ?, updated_at = ?
                 WHERE id = ?
                """,
                (new_title, new_content, placed_category, placed_subcategory, format_timestamp(utc_now()), note_id),
            )
        self.notifier.emit(Topic.NOTE_CHANGED, EntityKind.NOTE, note_id, title=new_title, category_id=placed_category)
        return self.get_note(note_id)

    def delete_note(self, note_id: str) -> None:
        note = self.get_note(note_id)
        with self._storage("delete note"), self.db.cursor() as cur:
            cur.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        _LOG.info("Deleted note %r", note.title)
        self.notifier.emit(Topic.NOTE_DELETED, EntityKind.NOTE, note_id, category_id=note.category_id)

    def note_counts(self) -> NoteCounts:
        counts = NoteCounts()
        for row in self._fetchall(
            "SELECT category_id, subcategory_id, COUNT(*) AS total FROM notes GROUP BY category_id, subcategory_id"
        ):
            total = int(row["total"])
            counts.total += total
            if row["category_id"] is None:
                counts.unlisted += total
            elif row["subcategory_id"] is None:
                counts.direct_by_category[row["category_id"]] = total
            else:
                counts.by_subcategory[row["subcategory_id"]] = total
        for row in self._fetchall("SELECT category_id, COUNT(*) AS total FROM subcategories GROUP BY category_id"):
            counts.subcategories_by_category[row["category_id"]] = int(row["total"])
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_category(self, category_id: str) -> Category:
        try:
            return self.get_category(category_id)
        except NotFoundError as exc:
            raise ValidationError(f"Unknown category {category_id}") from exc

    def _require_subcategory(self, subcategory_id: str) -> SubCategory:
        try:
            return self.get_subcategory(subcategory_id)
        except NotFoundError as exc:
            raise ValidationError(f"Unknown subcategory {subcategory_id}") from exc

    def _resolve_placement(
        self,
        current_category: Optional[str],
        current_subcategory: Optional[str],
        category_id: Any,
        subcategory_id: Any,
    ) -> Tuple[Optional[str], Optional[str]]:
        if subcategory_id is not UNSET and subcategory_id is not None:
            subcategory = self._require_subcategory(subcategory_id)
            if category_id is UNSET or category_id is None:
                return subcategory.category_id, subcategory.id
            self._require_category(category_id)
            if subcategory.category_id == category_id:
                return category_id, subcategory.id
            _LOG.warning(
                "Subcategory %s does not belong to category %s; filing note directly under the category",
                subcategory.id,
                category_id,
            )
            return category_id, None
        if category_id is UNSET:
            if subcategory_id is None:
                return current_category, None
            return current_category, current_subcategory
        if category_id is None:
            return None, None
        self._require_category(category_id)
        if subcategory_id is UNSET and category_id == current_category:
            return category_id, current_subcategory
        return category_id, None

    def _row_to_category(self, row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            color_hex=row["color_hex"] or DEFAULT_HEX,
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def _row_to_subcategory(self, row: sqlite3.Row) -> SubCategory:
        return SubCategory(
            id=row["id"],
            name=row["name"],
            color_hex=row["color_hex"] or DEFAULT_HEX,
            category_id=row["category_id"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def _row_to_note(self, row: sqlite3.Row) -> Note:
        return Note(
            id=row["id"],
            title=row["title"],
            content=row["content"] or "",
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            category_id=row["category_id"],
            subcategory_id=row["subcategory_id"],
            category_name=row["category_name"],
            subcategory_name=row["subcategory_name"],
        )


__all__ = ["NotebookManager", "UNSET", "format_timestamp", "parse_timestamp", "utc_now"]

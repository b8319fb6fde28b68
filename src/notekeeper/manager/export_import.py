"""JSON export and import of the whole notebook."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .. import config
from ..data_paths import exports_dir
from ..errors import ImportCancelled, ImportFormatError
from ..events import Dispatcher, call_now
from ..logger import configure_logging
from ..palette import coerce_hex, is_valid_hex
from .models import Category, Note, SubCategory
from .notebook import NotebookManager, parse_timestamp
from .query import UNLISTED, InCategory, InSubcategory, NoteQuery, SortDirection, SortField

_LOG = configure_logging()

TOP_LEVEL_KEYS = ("categories", "unlistedNotes")


def format_iso(value: datetime) -> str:
    """ISO-8601 in UTC with a ``Z`` suffix and whole seconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_date(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return parse_timestamp(value.strip())
    except ValueError:
        return None


def _text(entry: Mapping[str, Any], key: str) -> Optional[str]:
    value = entry.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _records(entry: Mapping[str, Any], key: str) -> List[Any]:
    value = entry.get(key)
    return value if isinstance(value, list) else []


class CancelToken:
    """Cooperative cancellation checked between imported records."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ImportCancelled("Import cancelled")


@dataclass(slots=True)
class ImportSummary:
    categories_created: int = 0
    categories_reused: int = 0
    subcategories_created: int = 0
    subcategories_reused: int = 0
    notes_created: int = 0
    notes_duplicate: int = 0
    skipped: int = 0

    @property
    def created(self) -> int:
        return self.categories_created + self.subcategories_created + self.notes_created

    def describe(self) -> str:
        parts = [
            f"{self.notes_created} note(s)",
            f"{self.categories_created} new categor{'y' if self.categories_created == 1 else 'ies'}",
            f"{self.subcategories_created} new subcategor{'y' if self.subcategories_created == 1 else 'ies'}",
        ]
        message = "Imported " + ", ".join(parts)
        if self.notes_duplicate:
            message += f"; {self.notes_duplicate} duplicate note(s) already present"
        if self.skipped:
            message += f"; skipped {self.skipped} incomplete record(s)"
        return message


class ExportImportManager:
    """Reads and writes ``NotesExport_*.json`` documents."""

    def __init__(self, notebook: NotebookManager, *, dedupe_notes: Optional[bool] = None) -> None:
        self.notebook = notebook
        self.dedupe_notes = config.IMPORT_DEDUPE_NOTES if dedupe_notes is None else dedupe_notes

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    @staticmethod
    def default_export_name(now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.now()).strftime(config.EXPORT_TIMESTAMP_FORMAT)
        return f"{config.EXPORT_FILE_PREFIX}{stamp}.json"

    def export_document(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        categories: List[Dict[str, Any]] = []
        for category in self.notebook.list_categories():
            categories.append(self._category_entry(category))
        unlisted = self._notes(NoteQuery(scope=UNLISTED))
        return {
            "exportDate": format_iso(now or datetime.now(UTC)),
            "categories": categories,
            "unlistedNotes": [self._note_entry(note) for note in unlisted],
        }

    def export_to_path(self, destination: Path) -> Path:
        document = self.export_document()
        destination.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(document, indent=2, ensure_ascii=False)
        destination.write_text(payload, encoding="utf-8")
        _LOG.info(
            "Exported %s categories and %s unlisted notes to %s",
            len(document["categories"]),
            len(document["unlistedNotes"]),
            destination,
        )
        return destination

    def export_to_directory(self, directory: Optional[Path] = None, now: Optional[datetime] = None) -> Path:
        target_dir = directory or exports_dir()
        return self.export_to_path(target_dir / self.default_export_name(now))

    def _notes(self, query: NoteQuery) -> List[Note]:
        ordered = NoteQuery(scope=query.scope, sort_field=SortField.CREATED_AT, direction=SortDirection.ASCENDING)
        return self.notebook.fetch_notes(ordered)

    def _category_entry(self, category: Category) -> Dict[str, Any]:
        return {
            "id": category.id,
            "name": category.name,
            "colorHex": category.color_hex,
            "createdAt": format_iso(category.created_at),
            "updatedAt": format_iso(category.updated_at),
            "notes": [self._note_entry(note) for note in self._notes(NoteQuery(scope=InCategory(category.id)))],
            "subcategories": [
                self._subcategory_entry(subcategory)
                for subcategory in self.notebook.list_subcategories(category.id)
            ],
        }

    def _subcategory_entry(self, subcategory: SubCategory) -> Dict[str, Any]:
        notes = self._notes(NoteQuery(scope=InSubcategory(subcategory.id)))
        return {
            "id": subcategory.id,
            "name": subcategory.name,
            "colorHex": subcategory.color_hex,
            "createdAt": format_iso(subcategory.created_at),
            "updatedAt": format_iso(subcategory.updated_at),
            "notes": [self._note_entry(note) for note in notes],
        }

    @staticmethod
    def _note_entry(note: Note) -> Dict[str, Any]:
        return {
            "id": note.id,
            "title": note.title,
            "content": note.content,
            "createdAt": format_iso(note.created_at),
            "updatedAt": format_iso(note.updated_at),
        }

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------
    @staticmethod
    def parse_document(text: str) -> Dict[str, Any]:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ImportFormatError(f"not valid JSON ({exc.msg} at line {exc.lineno})") from exc
        ExportImportManager.validate_document(document)
        return document

    @staticmethod
    def validate_document(document: Any) -> None:
        if not isinstance(document, dict):
            raise ImportFormatError("top level must be a JSON object")
        present = [key for key in TOP_LEVEL_KEYS if key in document]
        if not present:
            raise ImportFormatError("expected 'categories' or 'unlistedNotes'")
        for key in present:
            if document[key] is not None and not isinstance(document[key], list):
                raise ImportFormatError(f"'{key}' must be a list")

    def read_document(self, source: Path) -> Dict[str, Any]:
        try:
            text = source.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ImportFormatError("file is not UTF-8 text") from exc
        return self.parse_document(text)

    def read_document_async(
        self,
        source: Path,
        on_loaded: Callable[[Dict[str, Any]], Any],
        on_error: Callable[[Exception], Any],
        dispatch: Optional[Dispatcher] = None,
    ) -> threading.Thread:
        """Read and parse ``source`` on a worker thread.

        Both callbacks run through ``dispatch`` (``GLib.idle_add`` in the GTK
        shell) so the resulting store mutations happen on the main thread.
        """
        deliver = dispatch or call_now

        def finish(callback: Callable[[Any], Any], value: Any) -> bool:
            callback(value)
            return False

        def worker() -> None:
            try:
                document = self.read_document(source)
            except (OSError, ImportFormatError) as exc:
                _LOG.error("Could not read import file %s: %s", source, exc)
                deliver(finish, on_error, exc)
                return
            deliver(finish, on_loaded, document)

        thread = threading.Thread(target=worker, name="notekeeper-import-reader", daemon=True)
        thread.start()
        return thread

    def import_from_path(self, source: Path, cancel: Optional[CancelToken] = None) -> ImportSummary:
        document = self.read_document(source)
        _LOG.info("Importing notebook document from %s", source)
        return self.import_document(document, cancel=cancel)

    def import_document(self, document: Any, cancel: Optional[CancelToken] = None) -> ImportSummary:
        """Merge ``document`` into the store as one transaction.

        Categories match by name and subcategories by ``(name, parent)``;
        notes match by ``(title, category, subcategory)`` when note
        de-duplication is enabled. Records without a name or title are
        skipped.
        """
        self.validate_document(document)
        summary = ImportSummary()
        with self.notebook.transaction():
            for entry in _records(document, "categories"):
                self._checkpoint(cancel)
                self._import_category(entry, summary, cancel)
            for entry in _records(document, "unlistedNotes"):
                self._checkpoint(cancel)
                self._import_note(entry, None, None, summary)
        _LOG.info(summary.describe())
        return summary

    @staticmethod
    def _checkpoint(cancel: Optional[CancelToken]) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()

    def _skip(self, summary: ImportSummary, kind: str, reason: str) -> None:
        summary.skipped += 1
        _LOG.warning("Skipping %s record: %s", kind, reason)

    def _import_category(self, entry: Any, summary: ImportSummary, cancel: Optional[CancelToken]) -> None:
        if not isinstance(entry, dict):
            self._skip(summary, "category", "not an object")
            return
        name = _text(entry, "name")
        if name is None:
            self._skip(summary, "category", "missing name")
            return
        color = entry.get("colorHex")
        category = self.notebook.find_category_by_name(name)
        if category is not None:
            summary.categories_reused += 1
            if isinstance(color, str) and is_valid_hex(color) and coerce_hex(color) != category.color_hex:
                category = self.notebook.update_category(category.id, color_hex=color, touch=False)
        else:
            category = self.notebook.create_category(
                name,
                color if isinstance(color, str) else None,
                entity_id=entry.get("id") if isinstance(entry.get("id"), str) else None,
                created_at=_parse_date(entry.get("createdAt")),
                updated_at=_parse_date(entry.get("updatedAt")),
            )
            summary.categories_created += 1

        for note_entry in _records(entry, "notes"):
            self._checkpoint(cancel)
            self._import_note(note_entry, category, None, summary)
        for sub_entry in _records(entry, "subcategories"):
            self._checkpoint(cancel)
            self._import_subcategory(sub_entry, category, summary, cancel)

    def _import_subcategory(
        self,
        entry: Any,
        parent: Category,
        summary: ImportSummary,
        cancel: Optional[CancelToken],
    ) -> None:
        if not isinstance(entry, dict):
            self._skip(summary, "subcategory", "not an object")
            return
        name = _text(entry, "name")
        if name is None:
            self._skip(summary, "subcategory", "missing name")
            return
        color = entry.get("colorHex")
        subcategory = self.notebook.find_subcategory(name, parent.id)
        if subcategory is not None:
            summary.subcategories_reused += 1
            if isinstance(color, str) and is_valid_hex(color) and coerce_hex(color) != subcategory.color_hex:
                subcategory = self.notebook.update_subcategory(subcategory.id, color_hex=color, touch=False)
        else:
            subcategory = self.notebook.create_subcategory(
                name,
                parent.id,
                color if isinstance(color, str) else None,
                entity_id=entry.get("id") if isinstance(entry.get("id"), str) else None,
                created_at=_parse_date(entry.get("createdAt")),
                updated_at=_parse_date(entry.get("updatedAt")),
            )
            summary.subcategories_created += 1

        for note_entry in _records(entry, "notes"):
            self._checkpoint(cancel)
            self._import_note(note_entry, parent, subcategory, summary)

    def _import_note(
        self,
        entry: Any,
        category: Optional[Category],
        subcategory: Optional[SubCategory],
        summary: ImportSummary,
    ) -> None:
        if not isinstance(entry, dict):
            self._skip(summary, "note", "not an object")
            return
        title = _text(entry, "title")
        if title is None:
            self._skip(summary, "note", "missing title")
            return
        category_id = category.id if category else None
        subcategory_id = subcategory.id if subcategory else None
        if self.dedupe_notes and self.notebook.find_note(title, category_id, subcategory_id) is not None:
            summary.notes_duplicate += 1
            return
        content = entry.get("content")
        self.notebook.create_note(
            title,
            content if isinstance(content, str) else "",
            category_id,
            subcategory_id,
            entity_id=entry.get("id") if isinstance(entry.get("id"), str) else None,
            created_at=_parse_date(entry.get("createdAt")),
            updated_at=_parse_date(entry.get("updatedAt")),
        )
        summary.notes_created += 1


__all__ = ["CancelToken", "ExportImportManager", "ImportSummary", "format_iso"]

"""Selection state and user commands shared by the window and the menus."""

from __future__ import annotations

import html
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .data_paths import user_cache_dir
from .errors import ImportCancelled, NotekeeperError
from .events import DATA_TOPICS, ChangeEvent, EntityKind, Topic
from .logger import configure_logging
from .manager.export_import import CancelToken, ExportImportManager
from .manager.models import Category, Note, SubCategory
from .manager.notebook import NotebookManager
from .manager.query import NoteQuery, SortField
from .notes import MarkdownRenderer

_LOG = configure_logging()

DEFAULT_NOTE_TITLE = "New Note"


@dataclass(slots=True)
class Alert:
    """Message for the in-app alert or toast."""

    title: str
    message: str
    is_error: bool = False


@dataclass(slots=True)
class Selection:
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    unlisted: bool = False
    search_text: str = ""
    sort_field: SortField = SortField.UPDATED_AT
    ascending: bool = False
    note_id: Optional[str] = None


class NotesController:
    """Turns sidebar selection and menu commands into notebook calls.

    Store failures come back as :class:`Alert` values instead of
    exceptions so the window can show them without crashing.
    """

    def __init__(
        self,
        notebook: NotebookManager,
        export_import: Optional[ExportImportManager] = None,
        renderer: Optional[MarkdownRenderer] = None,
    ) -> None:
        self.notebook = notebook
        self.export_import = export_import or ExportImportManager(notebook)
        self.renderer = renderer or MarkdownRenderer()
        self.selection = Selection()
        self._visible: Optional[List[Note]] = None
        self._subscription = notebook.notifier.subscribe(self._on_change, DATA_TOPICS)

    def close(self) -> None:
        self._subscription.cancel()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    @property
    def query(self) -> NoteQuery:
        sel = self.selection
        return NoteQuery.from_selection(
            category_id=sel.category_id,
            subcategory_id=sel.subcategory_id,
            unlisted=sel.unlisted,
            search=sel.search_text,
            sort_field=sel.sort_field,
            ascending=sel.ascending,
        )

    @property
    def is_stale(self) -> bool:
        return self._visible is None

    def visible_notes(self) -> List[Note]:
        if self._visible is None:
            self._visible = self.notebook.fetch_notes(self.query)
        return list(self._visible)

    def select_all(self) -> None:
        self._select(None, None, unlisted=False)

    def select_unlisted(self) -> None:
        self._select(None, None, unlisted=True)

    def select_category(self, category_id: str) -> None:
        self._select(category_id, None, unlisted=False)

    def select_subcategory(self, subcategory_id: str) -> None:
        subcategory = self.notebook.get_subcategory(subcategory_id)
        self._select(subcategory.category_id, subcategory.id, unlisted=False)

    def select_note(self, note_id: Optional[str]) -> None:
        self.selection.note_id = note_id

    def set_search_text(self, text: str) -> None:
        self.selection.search_text = text or ""
        self._visible = None

    def set_sort(self, field: Any, ascending: bool) -> None:
        self.selection.sort_field = SortField.parse(field)
        self.selection.ascending = ascending
        self._visible = None

    def _select(self, category_id: Optional[str], subcategory_id: Optional[str], *, unlisted: bool) -> None:
        self.selection.category_id = category_id
        self.selection.subcategory_id = subcategory_id
        self.selection.unlisted = unlisted
        self._visible = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def new_note(self, title: str = DEFAULT_NOTE_TITLE, content: str = "") -> Union[Note, Alert]:
        """Create a note in the current sidebar selection and select it.

        Returns an error :class:`Alert` instead when the store refuses the
        note, e.g. when the selected category was deleted meanwhile.
        """
        sel = self.selection
        try:
            note = self.notebook.create_note(
                title,
                content,
                category_id=sel.category_id,
                subcategory_id=sel.subcategory_id,
            )
        except NotekeeperError as exc:
            _LOG.error("Could not create note: %s", exc)
            return Alert("Could Not Create Note", str(exc), is_error=True)
        sel.note_id = note.id
        self.notebook.notifier.emit(Topic.CREATE_NEW_NOTE, EntityKind.NOTE, note.id)
        return note

    def focus_search(self) -> None:
        self.notebook.notifier.emit(Topic.FOCUS_SEARCH)

    def export_all(self, destination: Optional[Path] = None) -> Alert:
        try:
            if destination is None:
                path = self.export_import.export_to_directory()
            else:
                path = self.export_import.export_to_path(destination)
        except (NotekeeperError, OSError) as exc:
            _LOG.error("Export failed: %s", exc)
            return Alert("Export Failed", str(exc), is_error=True)
        return Alert("Export Complete", f"Notes exported to {path}")

    def import_notes(self, source: Path, cancel: Optional[CancelToken] = None) -> Alert:
        try:
            document = self.export_import.read_document(source)
        except (NotekeeperError, OSError) as exc:
            _LOG.error("Import of %s failed: %s", source, exc)
            return Alert("Import Failed", str(exc), is_error=True)
        return self.apply_import(document, cancel)

    def apply_import(self, document: Dict[str, Any], cancel: Optional[CancelToken] = None) -> Alert:
        try:
            summary = self.export_import.import_document(document, cancel=cancel)
        except ImportCancelled:
            return Alert("Import Cancelled", "No notes were imported.")
        except NotekeeperError as exc:
            _LOG.error("Import failed: %s", exc)
            return Alert("Import Failed", str(exc), is_error=True)
        return Alert("Import Complete", summary.describe())

    def import_failed(self, exc: Exception) -> Alert:
        return Alert("Import Failed", str(exc), is_error=True)

    # ------------------------------------------------------------------
    # Edit sheets
    # ------------------------------------------------------------------
    def save_note(
        self,
        note_id: str,
        *,
        title: str,
        content: str,
        category_id: Optional[str] = None,
        subcategory_id: Optional[str] = None,
    ) -> Optional[Alert]:
        try:
            self.notebook.update_note(
                note_id,
                title=title,
                content=content,
                category_id=category_id,
                subcategory_id=subcategory_id,
            )
        except NotekeeperError as exc:
            return Alert("Could Not Save Note", str(exc), is_error=True)
        return None

    def delete_note(self, note_id: str) -> Optional[Alert]:
        try:
            self.notebook.delete_note(note_id)
        except NotekeeperError as exc:
            return Alert("Could Not Delete Note", str(exc), is_error=True)
        return None

    def add_category(self, name: str, color_hex: Optional[str] = None) -> Optional[Alert]:
        try:
            category = self.notebook.create_category(name, color_hex)
        except NotekeeperError as exc:
            return Alert("Could Not Create Category", str(exc), is_error=True)
        self.select_category(category.id)
        return None

    def add_subcategory(self, name: str, category_id: str, color_hex: Optional[str] = None) -> Optional[Alert]:
        try:
            subcategory = self.notebook.create_subcategory(name, category_id, color_hex)
        except NotekeeperError as exc:
            return Alert("Could Not Create Subcategory", str(exc), is_error=True)
        self.select_subcategory(subcategory.id)
        return None

    def edit_category(
        self,
        category_id: str,
        *,
        name: Optional[str] = None,
        color_hex: Optional[str] = None,
        delete: bool = False,
    ) -> Optional[Alert]:
        return self._edit_container(EntityKind.CATEGORY, category_id, name, color_hex, delete)

    def edit_subcategory(
        self,
        subcategory_id: str,
        *,
        name: Optional[str] = None,
        color_hex: Optional[str] = None,
        delete: bool = False,
    ) -> Optional[Alert]:
        return self._edit_container(EntityKind.SUBCATEGORY, subcategory_id, name, color_hex, delete)

    def _edit_container(
        self,
        kind: EntityKind,
        entity_id: str,
        name: Optional[str],
        color_hex: Optional[str],
        delete: bool,
    ) -> Optional[Alert]:
        label = "Category" if kind is EntityKind.CATEGORY else "Subcategory"
        try:
            self.notebook.edit_container(kind, entity_id, name=name, color_hex=color_hex, delete=delete)
        except NotekeeperError as exc:
            action = "Delete" if delete else "Save"
            return Alert(f"Could Not {action} {label}", str(exc), is_error=True)
        return None

    # ------------------------------------------------------------------
    # Sidebar data
    # ------------------------------------------------------------------
    def categories(self) -> List[Category]:
        return self.notebook.list_categories()

    def subcategories(self, category_id: str) -> List[SubCategory]:
        return self.notebook.list_subcategories(category_id)

    def preview(self, note_id: str) -> str:
        return self.renderer.render_note(self.notebook.get_note(note_id))

    def write_preview(self, note_id: str, directory: Optional[Path] = None) -> Path:
        """Write the rendered note to an HTML file for an external viewer."""
        note = self.notebook.get_note(note_id)
        target_dir = directory or user_cache_dir() / "preview"
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{note.id}.html"
        body = self.renderer.render_note(note)
        target.write_text(
            f"<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\"><title>{html.escape(note.title)}</title></head>"
            f"<body>\n{body}</body></html>\n",
            encoding="utf-8",
        )
        return target

    def _on_change(self, event: ChangeEvent) -> None:
        self._visible = None
        sel = self.selection
        if event.topic is Topic.NOTE_DELETED and event.entity_id == sel.note_id:
            sel.note_id = None
        elif event.topic is Topic.CATEGORY_DELETED and event.entity_id == sel.category_id:
            self._select(None, None, unlisted=False)
        elif event.topic is Topic.SUBCATEGORY_DELETED and event.entity_id == sel.subcategory_id:
            self._select(event.payload.get("category_id"), None, unlisted=False)


__all__ = ["Alert", "DEFAULT_NOTE_TITLE", "NotesController", "Selection"]

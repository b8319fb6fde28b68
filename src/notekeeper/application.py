"""Primary application entry point for Notekeeper."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import gi  # type: ignore[import]

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")

from gi.repository import Adw, Gio, GLib, Gtk, Pango  # type: ignore[import]

from . import config
from .controller import Alert, NotesController
from .data_paths import exports_dir, log_dir
from .db import Database
from .dev_seed import seed_if_requested
from .events import ChangeEvent, EntityKind, Topic
from .logger import configure_logging
from .manager.export_import import CancelToken, ExportImportManager
from .manager.models import Note
from .manager.notebook import NotebookManager
from .manager.query import SortField
from .notes import MarkdownRenderer
from .palette import PaletteColor, color_name, normalize_hex

_LOG = configure_logging()

SORT_OPTIONS: List[Tuple[str, SortField, bool]] = [
    ("Last Modified", SortField.UPDATED_AT, False),
    ("Oldest Modified", SortField.UPDATED_AT, True),
    ("Newest Created", SortField.CREATED_AT, False),
    ("Oldest Created", SortField.CREATED_AT, True),
    ("Title (A to Z)", SortField.TITLE, True),
    ("Title (Z to A)", SortField.TITLE, False),
    ("Content", SortField.CONTENT, True),
]

AUTOSAVE_DELAY_MS = 700


def _swatch(color_hex: str) -> Gtk.Label:
    label = Gtk.Label()
    label.set_markup(f'<span foreground="#{normalize_hex(color_hex)}">●</span>')
    return label


class SidebarRow(Gtk.ListBoxRow):
    """One entry of the sidebar: a fixed scope, a category or a subcategory."""

    def __init__(
        self,
        kind: str,
        entity_id: Optional[str],
        label: str,
        count: int,
        color_hex: Optional[str] = None,
        indent: bool = False,
    ) -> None:
        super().__init__()
        self.kind = kind
        self.entity_id = entity_id

        box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        box.set_margin_top(6)
        box.set_margin_bottom(6)
        box.set_margin_start(24 if indent else 8)
        box.set_margin_end(8)
        if color_hex:
            box.append(_swatch(color_hex))

        name = Gtk.Label(label=label, xalign=0)
        name.set_hexpand(True)
        name.set_ellipsize(Pango.EllipsizeMode.END)
        box.append(name)

        badge = Gtk.Label(label=str(count))
        badge.add_css_class("dim-label")
        box.append(badge)
        self.set_child(box)


class NoteRow(Gtk.ListBoxRow):
    def __init__(self, note: Note) -> None:
        super().__init__()
        self.note_id = note.id

        wrapper = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        wrapper.set_margin_top(8)
        wrapper.set_margin_bottom(8)
        wrapper.set_margin_start(12)
        wrapper.set_margin_end(12)

        title = Gtk.Label(label=note.title, xalign=0)
        title.add_css_class("heading")
        title.set_ellipsize(Pango.EllipsizeMode.END)
        wrapper.append(title)

        summary = Gtk.Label(xalign=0)
        summary.add_css_class("dim-label")
        summary.set_ellipsize(Pango.EllipsizeMode.END)
        location = note.display_category
        if note.subcategory_name:
            location = f"{location} / {note.subcategory_name}"
        summary.set_text(f"{location} · Updated {note.updated_at.astimezone():%Y-%m-%d %H:%M}")
        wrapper.append(summary)
        self.set_child(wrapper)


class MainWindow:
    """Controller for the main application window."""

    def __init__(self, app: "NotekeeperApplication") -> None:
        self.app = app
        self.controller: NotesController = app.controller
        self.window = Adw.ApplicationWindow(application=app)
        self.window.set_title(config.APP_NAME)
        self.window.set_default_size(1180, 760)
        self.window.connect("close-request", self._on_close_request)

        self.toast_overlay = Adw.ToastOverlay()
        self.window.set_content(self.toast_overlay)

        self._populating = False
        self._refresh_pending = False
        self._detail_note_id: Optional[str] = None
        self._save_timeout_id = 0
        self._category_ids: List[Optional[str]] = []
        self._subcategory_ids: List[Optional[str]] = []

        root = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        self.toast_overlay.set_child(root)
        self._build_header(root)
        self._build_body(root)

        self._subscription = app.notebook.notifier.subscribe(self._on_store_event)
        self.refresh_sidebar()
        self.refresh_notes()

    def present(self) -> None:
        self.window.present()

    # ------------------------------------------------------------------
    # UI construction helpers
    # ------------------------------------------------------------------
    def _build_header(self, root: Gtk.Box) -> None:
        header = Adw.HeaderBar()
        header.set_title_widget(Adw.WindowTitle(title=config.APP_NAME, subtitle="Notes"))

        new_button = Gtk.Button(icon_name="document-new-symbolic")
        new_button.set_tooltip_text("New Note")
        new_button.set_action_name("app.new-note")
        header.pack_start(new_button)

        menu_button = Gtk.MenuButton(icon_name="open-menu-symbolic")
        menu_button.set_tooltip_text("Main Menu")
        menu_button.set_menu_model(self._build_main_menu())
        header.pack_end(menu_button)

        self.sort_dropdown = Gtk.DropDown.new_from_strings([label for label, _field, _asc in SORT_OPTIONS])
        self.sort_dropdown.set_tooltip_text("Sort notes")
        self.sort_dropdown.connect("notify::selected", self._on_sort_changed)
        header.pack_end(self.sort_dropdown)

        root.append(header)

    def _build_main_menu(self) -> Gio.MenuModel:
        menu = Gio.Menu()
        menu.append("New Category…", "app.new-category")
        transfer = Gio.Menu()
        transfer.append("Import Notes…", "app.import")
        transfer.append("Export Notes…", "app.export")
        menu.append_section(None, transfer)
        misc = Gio.Menu()
        misc.append("Open Log Folder", "app.open-logs")
        misc.append("About Notekeeper", "app.about")
        menu.append_section(None, misc)
        return menu

    def _build_body(self, root: Gtk.Box) -> None:
        self.split_view = Adw.NavigationSplitView()
        self.split_view.set_min_sidebar_width(240)
        self.split_view.set_sidebar_width_fraction(0.25)
        self.split_view.set_hexpand(True)
        self.split_view.set_vexpand(True)
        root.append(self.split_view)

        # Sidebar
        sidebar_box = Gtk.Box(
            orientation=Gtk.Orientation.VERTICAL,
            spacing=8,
            margin_top=6,
            margin_bottom=6,
            margin_start=6,
            margin_end=6,
        )

        self.search_entry = Gtk.SearchEntry()
        self.search_entry.set_placeholder_text("Search notes…")
        self.search_entry.connect("search-changed", self._on_search_changed)
        sidebar_box.append(self.search_entry)

        self.sidebar_list = Gtk.ListBox(selection_mode=Gtk.SelectionMode.SINGLE)
        self.sidebar_list.add_css_class("navigation-sidebar")
        self.sidebar_list.connect("row-selected", self._on_sidebar_selected)
        sidebar_scroller = Gtk.ScrolledWindow()
        sidebar_scroller.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        sidebar_scroller.set_vexpand(True)
        sidebar_scroller.set_child(self.sidebar_list)
        sidebar_box.append(sidebar_scroller)

        sidebar_actions = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=6)
        self.add_subcategory_button = Gtk.Button(icon_name="list-add-symbolic")
        self.add_subcategory_button.set_tooltip_text("Add Subcategory")
        self.add_subcategory_button.connect("clicked", self._on_add_subcategory_clicked)
        sidebar_actions.append(self.add_subcategory_button)
        self.edit_container_button = Gtk.Button(icon_name="document-edit-symbolic")
        self.edit_container_button.set_tooltip_text("Edit Category")
        self.edit_container_button.connect("clicked", self._on_edit_container_clicked)
        sidebar_actions.append(self.edit_container_button)
        sidebar_box.append(sidebar_actions)

        sidebar_page = Adw.NavigationPage(child=sidebar_box)
        sidebar_page.set_title("Browse")
        self.split_view.set_sidebar(sidebar_page)

        # Note list and detail
        paned = Gtk.Paned(orientation=Gtk.Orientation.HORIZONTAL)
        paned.set_position(320)

        self.notes_list = Gtk.ListBox(selection_mode=Gtk.SelectionMode.SINGLE)
        self.notes_list.add_css_class("navigation-sidebar")
        self.notes_list.connect("row-selected", self._on_note_selected)
        self.notes_stack = Gtk.Stack()
        notes_scroller = Gtk.ScrolledWindow()
        notes_scroller.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        notes_scroller.set_child(self.notes_list)
        self.notes_stack.add_named(notes_scroller, "list")
        self.notes_stack.add_named(
            Adw.StatusPage(
                icon_name="accessories-text-editor-symbolic",
                title="No Notes",
                description="Press Ctrl+N to write a note here.",
            ),
            "empty",
        )
        paned.set_start_child(self.notes_stack)

        self.detail_stack = Gtk.Stack()
        self.detail_stack.add_named(
            Adw.StatusPage(icon_name="document-edit-symbolic", title="No Note Selected"),
            "empty",
        )
        self.detail_stack.add_named(self._build_detail_view(), "detail")
        paned.set_end_child(self.detail_stack)

        content_page = Adw.NavigationPage(child=paned)
        content_page.set_title("Notes")
        self.split_view.set_content(content_page)

    def _build_detail_view(self) -> Gtk.Widget:
        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        box.set_margin_top(16)
        box.set_margin_bottom(16)
        box.set_margin_start(16)
        box.set_margin_end(16)

        self.title_entry = Gtk.Entry()
        self.title_entry.set_placeholder_text("Title")
        self.title_entry.add_css_class("title-2")
        self.title_entry.connect("changed", self._on_note_edited)
        box.append(self.title_entry)

        placement = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        self.category_dropdown = Gtk.DropDown.new_from_strings(["Unlisted"])
        self.category_dropdown.connect("notify::selected", self._on_placement_changed)
        placement.append(self.category_dropdown)
        self.subcategory_dropdown = Gtk.DropDown.new_from_strings(["None"])
        self.subcategory_dropdown.connect("notify::selected", self._on_placement_changed)
        placement.append(self.subcategory_dropdown)

        spacer = Gtk.Box()
        spacer.set_hexpand(True)
        placement.append(spacer)

        preview_button = Gtk.Button(label="Preview")
        preview_button.connect("clicked", self._on_preview_clicked)
        placement.append(preview_button)
        delete_button = Gtk.Button(label="Delete")
        delete_button.add_css_class("destructive-action")
        delete_button.connect("clicked", self._on_delete_note_clicked)
        placement.append(delete_button)
        box.append(placement)

        self.content_view = Gtk.TextView()
        self.content_view.set_wrap_mode(Gtk.WrapMode.WORD_CHAR)
        self.content_view.set_monospace(True)
        self.content_view.get_buffer().connect("changed", self._on_note_edited)
        scroller = Gtk.ScrolledWindow()
        scroller.set_vexpand(True)
        scroller.set_child(self.content_view)
        box.append(scroller)
        return box

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def refresh_sidebar(self) -> None:
        counts = self.app.notebook.note_counts()
        selection = self.controller.selection
        self._populating = True
        try:
            self._clear(self.sidebar_list)
            self.sidebar_list.append(SidebarRow("all", None, "All Notes", counts.total))
            self.sidebar_list.append(SidebarRow("unlisted", None, "Unlisted", counts.unlisted))
            for category in self.controller.categories():
                subcategories = self.controller.subcategories(category.id)
                total = counts.total_note_count(category.id, [sub.id for sub in subcategories])
                self.sidebar_list.append(SidebarRow("category", category.id, category.name, total, category.color_hex))
                for subcategory in subcategories:
                    self.sidebar_list.append(
                        SidebarRow(
                            "subcategory",
                            subcategory.id,
                            subcategory.name,
                            counts.subcategory_note_count(subcategory.id),
                            subcategory.color_hex,
                            indent=True,
                        )
                    )
            self.sidebar_list.select_row(self._find_sidebar_row(selection))
        finally:
            self._populating = False
        self._update_sidebar_actions()

    def _find_sidebar_row(self, selection) -> Optional[SidebarRow]:
        if selection.subcategory_id:
            wanted: Tuple[str, Optional[str]] = ("subcategory", selection.subcategory_id)
        elif selection.category_id:
            wanted = ("category", selection.category_id)
        elif selection.unlisted:
            wanted = ("unlisted", None)
        else:
            wanted = ("all", None)
        row = self.sidebar_list.get_first_child()
        while row is not None:
            if isinstance(row, SidebarRow) and (row.kind, row.entity_id) == wanted:
                return row
            row = row.get_next_sibling()
        return None

    def refresh_notes(self) -> None:
        notes = self.controller.visible_notes()
        selected_id = self.controller.selection.note_id
        self._populating = True
        try:
            self._clear(self.notes_list)
            selected_row: Optional[NoteRow] = None
            for note in notes:
                row = NoteRow(note)
                self.notes_list.append(row)
                if note.id == selected_id:
                    selected_row = row
            self.notes_list.select_row(selected_row)
        finally:
            self._populating = False
        self.notes_stack.set_visible_child_name("list" if notes else "empty")
        if selected_id is None:
            self._show_detail(None)
        elif selected_id != self._detail_note_id:
            self._show_detail(selected_id)

    def _schedule_refresh(self) -> None:
        if self._refresh_pending:
            return
        self._refresh_pending = True
        GLib.idle_add(self._flush_refresh)

    def _flush_refresh(self) -> bool:
        self._refresh_pending = False
        self.refresh_sidebar()
        self.refresh_notes()
        return False

    @staticmethod
    def _clear(listbox: Gtk.ListBox) -> None:
        child = listbox.get_first_child()
        while child is not None:
            following = child.get_next_sibling()
            listbox.remove(child)
            child = following

    def _update_sidebar_actions(self) -> None:
        selection = self.controller.selection
        self.add_subcategory_button.set_sensitive(bool(selection.category_id) and not selection.subcategory_id)
        self.edit_container_button.set_sensitive(bool(selection.category_id))
        self.edit_container_button.set_tooltip_text(
            "Edit Subcategory" if selection.subcategory_id else "Edit Category"
        )

    # ------------------------------------------------------------------
    # Note detail
    # ------------------------------------------------------------------
    def _show_detail(self, note_id: Optional[str]) -> None:
        self.flush_pending_save()
        self._detail_note_id = None
        if note_id is None:
            self.detail_stack.set_visible_child_name("empty")
            return
        try:
            note = self.app.notebook.get_note(note_id)
        except LookupError:
            self.controller.select_note(None)
            self.detail_stack.set_visible_child_name("empty")
            return
        self._populating = True
        try:
            self.title_entry.set_text(note.title)
            self.content_view.get_buffer().set_text(note.content)
            self._populate_placement(note.category_id, note.subcategory_id)
        finally:
            self._populating = False
        self._detail_note_id = note.id
        self.detail_stack.set_visible_child_name("detail")

    def _populate_placement(self, category_id: Optional[str], subcategory_id: Optional[str]) -> None:
        categories = self.controller.categories()
        self._category_ids = [None] + [category.id for category in categories]
        self.category_dropdown.set_model(Gtk.StringList.new(["Unlisted"] + [category.name for category in categories]))
        self.category_dropdown.set_selected(self._index(self._category_ids, category_id))

        subcategories = self.controller.subcategories(category_id) if category_id else []
        self._subcategory_ids = [None] + [sub.id for sub in subcategories]
        self.subcategory_dropdown.set_model(Gtk.StringList.new(["None"] + [sub.name for sub in subcategories]))
        self.subcategory_dropdown.set_selected(self._index(self._subcategory_ids, subcategory_id))
        self.subcategory_dropdown.set_sensitive(category_id is not None)

    @staticmethod
    def _index(values: List[Optional[str]], value: Optional[str]) -> int:
        try:
            return values.index(value)
        except ValueError:
            return 0

    def _selected_id(self, dropdown: Gtk.DropDown, values: List[Optional[str]]) -> Optional[str]:
        position = dropdown.get_selected()
        if position == Gtk.INVALID_LIST_POSITION or position >= len(values):
            return None
        return values[position]

    def _content_text(self) -> str:
        buffer = self.content_view.get_buffer()
        start, end = buffer.get_bounds()
        return buffer.get_text(start, end, True)

    def _on_note_edited(self, *_args: Any) -> None:
        if self._populating or self._detail_note_id is None:
            return
        if self._save_timeout_id:
            GLib.source_remove(self._save_timeout_id)
        self._save_timeout_id = GLib.timeout_add(AUTOSAVE_DELAY_MS, self._on_save_timeout)

    def _on_save_timeout(self) -> bool:
        self._save_timeout_id = 0
        self._save_detail()
        return False

    def _cancel_pending_save(self) -> bool:
        if not self._save_timeout_id:
            return False
        GLib.source_remove(self._save_timeout_id)
        self._save_timeout_id = 0
        return True

    def flush_pending_save(self) -> None:
        if self._cancel_pending_save():
            self._save_detail()

    def _save_detail(self) -> None:
        if self._detail_note_id is None:
            return
        category_id = self._selected_id(self.category_dropdown, self._category_ids)
        subcategory_id = self._selected_id(self.subcategory_dropdown, self._subcategory_ids) if category_id else None
        alert = self.controller.save_note(
            self._detail_note_id,
            title=self.title_entry.get_text(),
            content=self._content_text(),
            category_id=category_id,
            subcategory_id=subcategory_id,
        )
        if alert:
            self.show_alert(alert)

    def _on_placement_changed(self, dropdown: Gtk.DropDown, _param: Any) -> None:
        if self._populating or self._detail_note_id is None:
            return
        if dropdown is self.category_dropdown:
            category_id = self._selected_id(self.category_dropdown, self._category_ids)
            self._populating = True
            try:
                self._populate_placement(category_id, None)
            finally:
                self._populating = False
        self._cancel_pending_save()
        self._save_detail()

    def _on_preview_clicked(self, _button: Gtk.Button) -> None:
        if self._detail_note_id is None:
            return
        self.flush_pending_save()
        try:
            path = self.controller.write_preview(self._detail_note_id)
        except (LookupError, OSError) as exc:
            _LOG.error("Could not write preview: %s", exc)
            self.show_alert(Alert("Preview Failed", str(exc), is_error=True))
            return
        launcher = Gtk.FileLauncher.new(Gio.File.new_for_path(str(path)))
        launcher.launch(self.window, None, None)

    def _on_delete_note_clicked(self, _button: Gtk.Button) -> None:
        note_id = self._detail_note_id
        if note_id is None:
            return
        dialog = Adw.MessageDialog.new(self.window)
        dialog.set_heading("Delete Note?")
        dialog.set_body(f"“{self.title_entry.get_text()}” will be removed permanently.")
        dialog.add_response("cancel", "Cancel")
        dialog.add_response("delete", "Delete")
        dialog.set_response_appearance("delete", Adw.ResponseAppearance.DESTRUCTIVE)
        dialog.set_default_response("cancel")
        dialog.set_close_response("cancel")

        def on_response(_dialog: Adw.MessageDialog, response: str) -> None:
            if response != "delete":
                return
            self._cancel_pending_save()
            alert = self.controller.delete_note(note_id)
            if alert:
                self.show_alert(alert)

        dialog.connect("response", on_response)
        dialog.present()

    # ------------------------------------------------------------------
    # Category / subcategory sheet
    # ------------------------------------------------------------------
    def present_container_sheet(
        self,
        kind: EntityKind,
        entity_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> None:
        """Shared create/edit sheet for categories and subcategories."""
        label = "Category" if kind is EntityKind.CATEGORY else "Subcategory"
        current_name = ""
        current_hex = PaletteColor.BLUE.hex_value
        if entity_id is not None:
            try:
                entity = (
                    self.app.notebook.get_category(entity_id)
                    if kind is EntityKind.CATEGORY
                    else self.app.notebook.get_subcategory(entity_id)
                )
            except LookupError:
                return
            current_name, current_hex = entity.name, entity.color_hex
        elif parent_id is not None:
            current_hex = self.app.notebook.get_category(parent_id).color_hex

        colors: List[Tuple[str, str]] = [(entry.label, entry.hex_value) for entry in PaletteColor]
        if color_name(current_hex) == "Custom":
            colors.append((f"Custom (#{current_hex})", current_hex))

        body = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)
        name_entry = Gtk.Entry()
        name_entry.set_placeholder_text(f"{label} name")
        name_entry.set_text(current_name)
        body.append(name_entry)
        color_dropdown = Gtk.DropDown.new_from_strings([name for name, _hex in colors])
        color_dropdown.set_selected(next((i for i, (_n, hex_value) in enumerate(colors) if hex_value == current_hex), 0))
        body.append(color_dropdown)

        dialog = Adw.MessageDialog.new(self.window)
        dialog.set_heading(f"Edit {label}" if entity_id else f"New {label}")
        dialog.set_extra_child(body)
        dialog.add_response("cancel", "Cancel")
        if entity_id is not None:
            dialog.add_response("delete", "Delete")
            dialog.set_response_appearance("delete", Adw.ResponseAppearance.DESTRUCTIVE)
        dialog.add_response("save", "Save")
        dialog.set_response_appearance("save", Adw.ResponseAppearance.SUGGESTED)
        dialog.set_default_response("save")
        dialog.set_close_response("cancel")

        def on_response(_dialog: Adw.MessageDialog, response: str) -> None:
            if response == "cancel":
                return
            chosen_hex = colors[min(color_dropdown.get_selected(), len(colors) - 1)][1]
            name = name_entry.get_text()
            alert: Optional[Alert]
            if entity_id is None and kind is EntityKind.CATEGORY:
                alert = self.controller.add_category(name, chosen_hex)
            elif entity_id is None and parent_id is not None:
                alert = self.controller.add_subcategory(name, parent_id, chosen_hex)
            elif kind is EntityKind.CATEGORY:
                alert = self.controller.edit_category(
                    entity_id, name=name, color_hex=chosen_hex, delete=response == "delete"
                )
            else:
                alert = self.controller.edit_subcategory(
                    entity_id, name=name, color_hex=chosen_hex, delete=response == "delete"
                )
            if alert:
                self.show_alert(alert)

        dialog.connect("response", on_response)
        dialog.present()

    def _on_add_subcategory_clicked(self, _button: Gtk.Button) -> None:
        category_id = self.controller.selection.category_id
        if category_id:
            self.present_container_sheet(EntityKind.SUBCATEGORY, parent_id=category_id)

    def _on_edit_container_clicked(self, _button: Gtk.Button) -> None:
        selection = self.controller.selection
        if selection.subcategory_id:
            self.present_container_sheet(EntityKind.SUBCATEGORY, selection.subcategory_id)
        elif selection.category_id:
            self.present_container_sheet(EntityKind.CATEGORY, selection.category_id)

    # ------------------------------------------------------------------
    # Signal handlers
    # ------------------------------------------------------------------
    def _on_sidebar_selected(self, _listbox: Gtk.ListBox, row: Optional[Gtk.ListBoxRow]) -> None:
        if self._populating or not isinstance(row, SidebarRow):
            return
        if row.kind == "unlisted":
            self.controller.select_unlisted()
        elif row.kind == "category" and row.entity_id:
            self.controller.select_category(row.entity_id)
        elif row.kind == "subcategory" and row.entity_id:
            self.controller.select_subcategory(row.entity_id)
        else:
            self.controller.select_all()
        self._update_sidebar_actions()
        self.refresh_notes()

    def _on_note_selected(self, _listbox: Gtk.ListBox, row: Optional[Gtk.ListBoxRow]) -> None:
        if self._populating:
            return
        note_id = row.note_id if isinstance(row, NoteRow) else None
        self.controller.select_note(note_id)
        self._show_detail(note_id)

    def _on_search_changed(self, entry: Gtk.SearchEntry) -> None:
        self.controller.set_search_text(entry.get_text())
        self.refresh_notes()

    def _on_sort_changed(self, dropdown: Gtk.DropDown, _param: Any) -> None:
        position = dropdown.get_selected()
        if position >= len(SORT_OPTIONS):
            return
        _label, field, ascending = SORT_OPTIONS[position]
        self.controller.set_sort(field, ascending)
        self.refresh_notes()

    def _on_store_event(self, event: ChangeEvent) -> None:
        if event.topic is Topic.FOCUS_SEARCH:
            self.search_entry.grab_focus()
            return
        if event.topic is Topic.CREATE_NEW_NOTE:
            self._flush_refresh()
            self.title_entry.grab_focus()
            return
        self._schedule_refresh()

    def _on_close_request(self, _window: Adw.ApplicationWindow) -> bool:
        self.flush_pending_save()
        self._subscription.cancel()
        return False

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------
    def show_alert(self, alert: Alert) -> None:
        toast = Adw.Toast.new(GLib.markup_escape_text(f"{alert.title}: {alert.message}"))
        if alert.is_error:
            toast.set_priority(Adw.ToastPriority.HIGH)
            toast.set_timeout(5)
        else:
            toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class NotekeeperApplication(Adw.Application):
    def __init__(self) -> None:
        super().__init__(application_id=config.APP_ID, flags=Gio.ApplicationFlags.FLAGS_NONE)
        self.database = Database()
        self.notebook = NotebookManager(self.database)
        self.notebook.notifier.set_dispatcher(GLib.idle_add)
        self.export_import = ExportImportManager(self.notebook)
        self.markdown_renderer = MarkdownRenderer()
        self.controller = NotesController(self.notebook, self.export_import, self.markdown_renderer)
        self.main_window: Optional[MainWindow] = None
        self._import_cancel: Optional[CancelToken] = None

    def do_startup(self) -> None:  # type: ignore[override]
        Adw.Application.do_startup(self)
        self._install_actions()

    def do_activate(self) -> None:  # type: ignore[override]
        if not self.main_window:
            seed_if_requested(self.notebook)
            self.main_window = MainWindow(self)
        self.main_window.present()

    def do_shutdown(self) -> None:  # type: ignore[override]
        _LOG.info("Shutting down application")
        if self._import_cancel is not None:
            self._import_cancel.cancel()
        self.controller.close()
        self.database.close()
        Adw.Application.do_shutdown(self)

    def _install_actions(self) -> None:
        accels: Dict[str, List[str]] = {
            "new-note": ["<Primary>n"],
            "focus-search": ["<Primary>f"],
            "export": ["<Primary><Shift>e"],
            "import": ["<Primary><Shift>i"],
        }
        self._add_simple_action("new-note", self._action_new_note)
        self._add_simple_action("focus-search", self.controller.focus_search)
        self._add_simple_action("export", self.export_notes)
        self._add_simple_action("import", self.import_notes)
        self._add_simple_action("new-category", self._action_new_category)
        self._add_simple_action("open-logs", self.open_logs)
        self._add_simple_action("about", self.show_about)
        for name, keys in accels.items():
            self.set_accels_for_action(f"app.{name}", keys)

    def _add_simple_action(self, name: str, callback) -> None:
        action = Gio.SimpleAction.new(name, None)
        action.connect("activate", lambda _a, _p: callback())
        self.add_action(action)

    def open_logs(self) -> None:
        folder = Gio.File.new_for_path(str(log_dir()))
        launcher = Gtk.FileLauncher.new(folder)
        launcher.launch(self.get_active_window(), None, None)

    def show_about(self) -> None:
        about = Adw.AboutWindow(
            transient_for=self.get_active_window(),
            application_name=config.APP_NAME,
            application_icon=config.APP_ID,
            version=config.APP_VERSION,
            comments="Categorised Markdown notes, stored locally.",
            license_type=Gtk.License.GPL_3_0,
        )
        about.present()

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    def _json_filters(self) -> Tuple[Gio.ListStore, Gtk.FileFilter]:
        filter_json = Gtk.FileFilter()
        filter_json.set_name("Notes Export (JSON)")
        filter_json.add_pattern("*.json")
        filter_all = Gtk.FileFilter()
        filter_all.set_name("All Files")
        filter_all.add_pattern("*")
        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(filter_json)
        filters.append(filter_all)
        return filters, filter_json

    def import_notes(self) -> None:
        _LOG.info("import action triggered")
        if not self.main_window:
            return
        dialog = Gtk.FileDialog()
        dialog.set_title("Import Notes")
        filters, default = self._json_filters()
        dialog.set_filters(filters)
        dialog.set_default_filter(default)
        dialog.open(self.main_window.window, None, self._on_import_response)

    def _on_import_response(self, dialog: Gtk.FileDialog, result: Gio.AsyncResult) -> None:
        try:
            file = dialog.open_finish(result)
        except GLib.Error as exc:
            if exc.code != Gtk.DialogError.DISMISSED:
                _LOG.error("Import dialog error: %s", exc)
                self._show_alert(Alert("Import Failed", "Could not open the file chooser", is_error=True))
            return
        path = file.get_path() if file else None
        if not path:
            return
        self._import_cancel = CancelToken()
        self.export_import.read_document_async(
            Path(path),
            on_loaded=self._on_import_loaded,
            on_error=self._on_import_error,
            dispatch=GLib.idle_add,
        )

    def _on_import_loaded(self, document: Dict[str, Any]) -> None:
        alert = self.controller.apply_import(document, self._import_cancel)
        self._import_cancel = None
        self._show_alert(alert)

    def _on_import_error(self, exc: Exception) -> None:
        self._import_cancel = None
        self._show_alert(self.controller.import_failed(exc))

    def export_notes(self) -> None:
        _LOG.info("export action triggered")
        if not self.main_window:
            return
        dialog = Gtk.FileDialog()
        dialog.set_title("Export Notes")
        dialog.set_initial_name(self.export_import.default_export_name())
        dialog.set_initial_folder(Gio.File.new_for_path(str(exports_dir())))
        filters, default = self._json_filters()
        dialog.set_filters(filters)
        dialog.set_default_filter(default)
        dialog.save(self.main_window.window, None, self._on_export_response)

    def _on_export_response(self, dialog: Gtk.FileDialog, result: Gio.AsyncResult) -> None:
        try:
            file = dialog.save_finish(result)
        except GLib.Error as exc:
            if exc.code != Gtk.DialogError.DISMISSED:
                _LOG.error("Export dialog error: %s", exc)
                self._show_alert(Alert("Export Failed", "Could not open the file chooser", is_error=True))
            return
        path = file.get_path() if file else None
        if path:
            self._show_alert(self.controller.export_all(Path(path)))

    def _show_alert(self, alert: Alert) -> None:
        if self.main_window:
            self.main_window.show_alert(alert)
        else:
            _LOG.warning("%s: %s", alert.title, alert.message)

    def _action_new_note(self) -> None:
        if self.main_window:
            self.main_window.flush_pending_save()
        result = self.controller.new_note()
        if isinstance(result, Alert):
            self._show_alert(result)

    def _action_new_category(self) -> None:
        if self.main_window:
            self.main_window.present_container_sheet(EntityKind.CATEGORY)


def run() -> None:
    app = NotekeeperApplication()
    app.run(None)

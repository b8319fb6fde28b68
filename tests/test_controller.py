from __future__ import annotations

import json

import pytest

from notekeeper.controller import Alert, NotesController
from notekeeper.events import Topic
from notekeeper.manager.query import InCategory, InSubcategory, SortField, UNLISTED


@pytest.fixture
def controller(notebook, exporter):
    instance = NotesController(notebook, exporter)
    yield instance
    instance.close()


def test_new_note_lands_in_current_selection(controller, notebook):
    work = notebook.create_category("Work")
    meetings = notebook.create_subcategory("Meetings", work.id)
    commands = []
    notebook.notifier.subscribe(commands.append, [Topic.CREATE_NEW_NOTE])

    controller.select_subcategory(meetings.id)
    note = controller.new_note()

    assert note.title == "New Note"
    assert (note.category_id, note.subcategory_id) == (work.id, meetings.id)
    assert controller.selection.note_id == note.id
    assert [event.entity_id for event in commands] == [note.id]

    controller.select_unlisted()
    assert controller.new_note("Inbox").is_unlisted


def test_new_note_with_stale_selection_returns_alert(controller, notebook):
    work = notebook.create_category("Work")
    controller.select_category(work.id)
    controller.close()
    notebook.delete_category(work.id)

    alert = controller.new_note()

    assert isinstance(alert, Alert)
    assert alert.is_error
    assert alert.title == "Could Not Create Note"
    assert controller.selection.note_id is None
    assert notebook.count_notes() == 0


def test_focus_search_publishes_command(controller, notebook):
    received = []
    notebook.notifier.subscribe(received.append)
    controller.focus_search()
    assert [event.topic for event in received] == [Topic.FOCUS_SEARCH]


def test_selection_drives_query(controller, notebook):
    work = notebook.create_category("Work")
    meetings = notebook.create_subcategory("Meetings", work.id)

    controller.select_category(work.id)
    assert controller.query.scope == InCategory(work.id)
    controller.select_subcategory(meetings.id)
    assert controller.query.scope == InSubcategory(meetings.id)
    assert controller.selection.category_id == work.id
    controller.select_unlisted()
    assert controller.query.scope == UNLISTED

    controller.set_search_text("plan")
    controller.set_sort("title", ascending=True)
    query = controller.query
    assert query.search_text == "plan"
    assert query.sort_field is SortField.TITLE


def test_visible_notes_refresh_after_store_changes(controller, notebook):
    assert controller.visible_notes() == []
    assert not controller.is_stale

    notebook.create_note("Loose")

    assert controller.is_stale
    assert [note.title for note in controller.visible_notes()] == ["Loose"]


def test_close_stops_cache_invalidation(controller, notebook):
    controller.visible_notes()
    controller.close()
    notebook.create_note("Loose")
    assert not controller.is_stale


def test_deleting_selected_category_resets_selection(controller, notebook):
    work = notebook.create_category("Work")
    meetings = notebook.create_subcategory("Meetings", work.id)

    controller.select_subcategory(meetings.id)
    assert controller.edit_subcategory(meetings.id, delete=True) is None
    assert controller.selection.category_id == work.id
    assert controller.selection.subcategory_id is None

    assert controller.edit_category(work.id, delete=True) is None
    assert controller.selection.category_id is None
    assert not controller.selection.unlisted


def test_save_note_and_validation_alert(controller, notebook):
    work = notebook.create_category("Work")
    note = controller.new_note()

    assert controller.save_note(note.id, title="Plan", content="Goals", category_id=work.id) is None
    saved = notebook.get_note(note.id)
    assert (saved.title, saved.content, saved.category_id) == ("Plan", "Goals", work.id)

    alert = controller.save_note(note.id, title="  ", content="")
    assert isinstance(alert, Alert)
    assert alert.is_error


def test_delete_note_clears_selected_note(controller):
    note = controller.new_note()
    assert controller.delete_note(note.id) is None
    assert controller.selection.note_id is None
    assert controller.delete_note(note.id).is_error


def test_edit_category_rename_and_recolour(controller, notebook):
    work = notebook.create_category("Work")
    assert controller.edit_category(work.id, name="Job", color_hex="808080") is None
    renamed = notebook.get_category(work.id)
    assert (renamed.name, renamed.color_hex) == ("Job", "808080")
    assert controller.edit_category(work.id, name="").is_error


def test_add_category_and_subcategory_select_them(controller, notebook):
    assert controller.add_category("Work", "FF0000") is None
    work = notebook.find_category_by_name("Work")
    assert controller.selection.category_id == work.id
    assert controller.add_subcategory("Meetings", work.id) is None
    assert controller.selection.subcategory_id == notebook.find_subcategory("Meetings", work.id).id
    assert controller.add_category(" ").is_error


def test_export_and_import_return_alerts(controller, notebook, tmp_path):
    notebook.create_note("Loose", "text")
    target = tmp_path / "out" / "export.json"

    alert = controller.export_all(target)
    assert not alert.is_error
    assert str(target) in alert.message
    assert json.loads(target.read_text(encoding="utf-8"))["unlistedNotes"][0]["title"] == "Loose"

    alert = controller.import_notes(target)
    assert alert.title == "Import Complete"
    assert "1 duplicate" in alert.message


def test_import_failures_become_error_alerts(controller, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    alert = controller.import_notes(bad)
    assert alert.is_error
    assert alert.message.startswith("Invalid format")

    missing = controller.import_notes(tmp_path / "missing.json")
    assert missing.is_error


def test_export_failure_becomes_error_alert(controller, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    alert = controller.export_all(blocker / "export.json")
    assert alert.is_error


def test_preview_renders_markdown(controller, tmp_path):
    pytest.importorskip("markdown2")
    note = controller.new_note("Plan", "**bold** <script>")
    html_text = controller.preview(note.id)
    assert "<h1>Plan</h1>" in html_text
    assert "<strong>bold</strong>" in html_text
    assert "<script>" not in html_text

    path = controller.write_preview(note.id, tmp_path)
    assert path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")

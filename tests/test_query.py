from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from notekeeper.manager.query import (
    ALL_NOTES,
    UNLISTED,
    InCategory,
    InSubcategory,
    NoteQuery,
    SortDirection,
    SortField,
)

BASE = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def populated(notebook):
    work = notebook.create_category("Work")
    meetings = notebook.create_subcategory("Meetings", work.id)
    notes = {
        "plan": notebook.create_note(
            "Plan", "Quarter goals", work.id, created_at=BASE, updated_at=BASE + timedelta(days=3)
        ),
        "standup": notebook.create_note(
            "standup", "Daily sync", work.id, meetings.id,
            created_at=BASE + timedelta(days=1), updated_at=BASE + timedelta(days=1),
        ),
        "loose": notebook.create_note(
            "Apples", "buy 100% juice", created_at=BASE + timedelta(days=2), updated_at=BASE + timedelta(days=2)
        ),
    }
    return notebook, work, meetings, notes


def _titles(notebook, query):
    return [note.title for note in notebook.fetch_notes(query)]


def test_scopes(populated):
    notebook, work, meetings, _notes = populated
    assert len(notebook.fetch_notes(NoteQuery(scope=ALL_NOTES))) == 3
    assert _titles(notebook, NoteQuery(scope=UNLISTED)) == ["Apples"]
    assert _titles(notebook, NoteQuery(scope=InCategory(work.id))) == ["Plan"]
    assert _titles(notebook, NoteQuery(scope=InSubcategory(meetings.id))) == ["standup"]


def test_default_sort_is_most_recently_updated_first(populated):
    notebook, *_ = populated
    assert _titles(notebook, NoteQuery()) == ["Plan", "Apples", "standup"]


def test_title_sort_ignores_case(populated):
    notebook, *_ = populated
    query = NoteQuery().sorted_by("title", ascending=True)
    assert _titles(notebook, query) == ["Apples", "Plan", "standup"]
    assert _titles(notebook, query.sorted_by(SortField.TITLE, ascending=False)) == ["standup", "Plan", "Apples"]


def test_created_sort_accepts_export_key(populated):
    notebook, *_ = populated
    query = NoteQuery().sorted_by("createdAt", ascending=True)
    assert query.sort_field is SortField.CREATED_AT
    assert _titles(notebook, query) == ["Plan", "standup", "Apples"]


def test_search_matches_title_or_content_case_insensitively(populated):
    notebook, *_ = populated
    assert _titles(notebook, NoteQuery(search_text="DAILY")) == ["standup"]
    assert _titles(notebook, NoteQuery(search_text="  plan ")) == ["Plan"]
    assert _titles(notebook, NoteQuery(search_text="zzz")) == []


def test_search_treats_like_wildcards_literally(populated):
    notebook, *_ = populated
    assert _titles(notebook, NoteQuery(search_text="100%")) == ["Apples"]
    assert _titles(notebook, NoteQuery(search_text="%")) == ["Apples"]
    assert _titles(notebook, NoteQuery(search_text="_")) == []


def test_search_combines_with_scope(populated):
    notebook, work, _meetings, _notes = populated
    query = NoteQuery(scope=InCategory(work.id), search_text="sync")
    assert _titles(notebook, query) == []
    assert notebook.count_notes(query.with_scope(ALL_NOTES)) == 1


def test_from_selection_precedence():
    assert NoteQuery.from_selection(category_id="c", subcategory_id="s").scope == InSubcategory("s")
    assert NoteQuery.from_selection(category_id="c").scope == InCategory("c")
    assert NoteQuery.from_selection(unlisted=True).scope == UNLISTED
    query = NoteQuery.from_selection(search=None, sort_field="title", ascending=True)
    assert query.scope == ALL_NOTES
    assert query.search_text == ""
    assert query.direction is SortDirection.ASCENDING


def test_to_sql_shape():
    where, order_by, params = NoteQuery().to_sql()
    assert where == "1=1"
    assert params == []
    assert order_by == "n.updated_at DESC, n.id DESC"

    where, order_by, params = NoteQuery(scope=InCategory("c"), search_text="a_b").sorted_by("title", True).to_sql("x")
    assert "x.category_id = ?" in where
    assert "x.subcategory_id IS NULL" in where
    assert params == ["c", "%a\\_b%", "%a\\_b%"]
    assert order_by == "casefold(x.title) ASC, x.id ASC"


def test_unknown_sort_field_is_rejected():
    with pytest.raises(ValueError):
        SortField.parse("colour")

from __future__ import annotations

from notekeeper import config, dev_seed


def test_seed_skipped_without_dev_profile(notebook, monkeypatch):
    monkeypatch.setattr(config, "DEV_PROFILE_ENABLED", False)
    assert dev_seed.seed_if_requested(notebook) is False
    assert notebook.list_categories() == []


def test_seed_populates_empty_notebook_once(notebook, monkeypatch):
    monkeypatch.setattr(config, "DEV_PROFILE_ENABLED", True)
    assert dev_seed.seed_if_requested(notebook) is True

    names = [category.name for category in notebook.list_categories()]
    assert names == ["Personal", "Work"]
    counts = notebook.note_counts()
    assert counts.total == 4
    assert counts.unlisted == 1

    assert dev_seed.seed_if_requested(notebook) is False
    assert notebook.count_notes() == 4

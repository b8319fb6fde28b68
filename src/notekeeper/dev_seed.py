"""Development fixtures for offline UI testing."""

from __future__ import annotations

from . import config
from .logger import configure_logging
from .manager.notebook import NotebookManager, utc_now
from .palette import PaletteColor

_LOG = configure_logging()


def seed_if_requested(notebook: NotebookManager) -> bool:
    """Populate an empty notebook when the dev profile is enabled."""
    if not config.DEV_PROFILE_ENABLED:
        return False
    if notebook.list_categories() or notebook.count_notes():
        _LOG.info("Dev profile requested but database already populated; skipping seed")
        return False

    with notebook.transaction():
        work = notebook.create_category("Work", PaletteColor.BLUE.hex_value)
        meetings = notebook.create_subcategory("Meetings", work.id)
        personal = notebook.create_category("Personal", PaletteColor.GREEN.hex_value)
        recipes = notebook.create_subcategory("Recipes", personal.id, PaletteColor.ORANGE.hex_value)

        notebook.create_note(
            "Quarterly planning",
            "## Goals\n\n- [ ] Draft the roadmap\n- [ ] Review hiring plan",
            work.id,
        )
        notebook.create_note("Standup", "Blocked on the **release** checklist.", work.id, meetings.id)
        notebook.create_note("Pancakes", "| Flour | 200g |\n|-------|------|\n| Milk | 300ml |", personal.id, recipes.id)
        notebook.create_note("Loose thought", "Not filed anywhere yet.")
    _LOG.info("Seeded development notebook data at %s", utc_now().isoformat())
    return True

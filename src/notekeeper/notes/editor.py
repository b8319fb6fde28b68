"""Markdown rendering for the note detail preview."""

from __future__ import annotations

import importlib
from functools import cached_property

from ..manager.models import Note


class MarkdownRenderer:
    """Renders note content to HTML; raw HTML in notes is escaped."""

    @cached_property
    def _converter(self):
        markdown2 = importlib.import_module("markdown2")
        return markdown2.Markdown(
            extras=["fenced-code-blocks", "tables", "strike", "task_list", "break-on-newline"],
            safe_mode="escape",
        )

    def render(self, text: str) -> str:
        if not text.strip():
            return ""
        return self._converter.convert(text)

    def render_note(self, note: Note) -> str:
        """Preview with the title as a heading above the content."""
        return self.render(f"# {note.title}\n\n{note.content}")

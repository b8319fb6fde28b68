"""Note preview rendering."""

from .editor import MarkdownRenderer

__all__ = ["MarkdownRenderer"]

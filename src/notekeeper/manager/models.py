"""Data models for categories, subcategories and notes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Optional

from ..palette import Color, color_from_hex


@dataclass(slots=True)
class Category:
    id: str
    name: str
    color_hex: str
    created_at: datetime
    updated_at: datetime

    @property
    def color(self) -> Color:
        return color_from_hex(self.color_hex)


@dataclass(slots=True)
class SubCategory:
    id: str
    name: str
    color_hex: str
    category_id: str
    created_at: datetime
    updated_at: datetime

    @property
    def color(self) -> Color:
        return color_from_hex(self.color_hex)


@dataclass(slots=True)
class Note:
    id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    category_name: Optional[str] = None
    subcategory_name: Optional[str] = None

    @property
    def is_unlisted(self) -> bool:
        return self.category_id is None

    @property
    def display_category(self) -> str:
        return self.category_name or "Uncategorized"

    @property
    def display_subcategory(self) -> str:
        return self.subcategory_name or "None"


@dataclass(slots=True)
class NoteCounts:
    """Sidebar badge totals."""

    total: int = 0
    unlisted: int = 0
    direct_by_category: Dict[str, int] = field(default_factory=dict)
    by_subcategory: Dict[str, int] = field(default_factory=dict)
    subcategories_by_category: Dict[str, int] = field(default_factory=dict)

    def note_count(self, category_id: str) -> int:
        return self.direct_by_category.get(category_id, 0)

    def subcategory_count(self, category_id: str) -> int:
        return self.subcategories_by_category.get(category_id, 0)

    def subcategory_note_count(self, subcategory_id: str) -> int:
        return self.by_subcategory.get(subcategory_id, 0)

    def total_note_count(self, category_id: str, subcategory_ids: Iterable[str] = ()) -> int:
        """Direct notes plus the notes of ``subcategory_ids``."""
        return self.note_count(category_id) + sum(self.by_subcategory.get(sub_id, 0) for sub_id in subcategory_ids)


__all__ = ["Category", "Note", "NoteCounts", "SubCategory"]

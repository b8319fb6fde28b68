"""Note filter and sort settings built from the sidebar selection."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Tuple, Union


class SortField(str, Enum):
    TITLE = "title"
    CONTENT = "content"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"

    @classmethod
    def parse(cls, value: Union[str, "SortField"]) -> "SortField":
        """Accept enum members, column names or the camelCase export keys."""
        if isinstance(value, SortField):
            return value
        aliases = {"createdAt": cls.CREATED_AT, "updatedAt": cls.UPDATED_AT}
        if value in aliases:
            return aliases[value]
        return cls(value)


class SortDirection(str, Enum):
    ASCENDING = "ASC"
    DESCENDING = "DESC"


@dataclass(frozen=True, slots=True)
class AllNotes:
    pass


@dataclass(frozen=True, slots=True)
class Unlisted:
    pass


@dataclass(frozen=True, slots=True)
class InCategory:
    """Notes filed directly under the category (no subcategory)."""

    category_id: str


@dataclass(frozen=True, slots=True)
class InSubcategory:
    subcategory_id: str


Scope = Union[AllNotes, Unlisted, InCategory, InSubcategory]

ALL_NOTES = AllNotes()
UNLISTED = Unlisted()

_TEXT_FIELDS = {SortField.TITLE, SortField.CONTENT}


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True, slots=True)
class NoteQuery:
    scope: Scope = ALL_NOTES
    search_text: str = ""
    sort_field: SortField = SortField.UPDATED_AT
    direction: SortDirection = SortDirection.DESCENDING

    @classmethod
    def from_selection(
        cls,
        *,
        category_id: Optional[str] = None,
        subcategory_id: Optional[str] = None,
        unlisted: bool = False,
        search: str = "",
        sort_field: Union[str, SortField] = SortField.UPDATED_AT,
        ascending: bool = False,
    ) -> "NoteQuery":
        scope: Scope
        if subcategory_id:
            scope = InSubcategory(subcategory_id)
        elif category_id:
            scope = InCategory(category_id)
        elif unlisted:
            scope = UNLISTED
        else:
            scope = ALL_NOTES
        return cls(
            scope=scope,
            search_text=search or "",
            sort_field=SortField.parse(sort_field),
            direction=SortDirection.ASCENDING if ascending else SortDirection.DESCENDING,
        )

    def with_scope(self, scope: Scope) -> "NoteQuery":
        return replace(self, scope=scope)

    def sorted_by(self, field: Union[str, SortField], ascending: bool) -> "NoteQuery":
        direction = SortDirection.ASCENDING if ascending else SortDirection.DESCENDING
        return replace(self, sort_field=SortField.parse(field), direction=direction)

    @property
    def search_term(self) -> str:
        return self.search_text.strip()

    def to_sql(self, alias: str = "n") -> Tuple[str, str, List[Any]]:
        """Return ``(where, order_by, params)`` for a query over ``notes``.

        ``where`` is ``"1=1"`` when nothing filters; text matching and text
        ordering go through the connection's ``casefold`` function.
        """
        clauses: List[str] = []
        params: List[Any] = []
        scope = self.scope
        if isinstance(scope, InSubcategory):
            clauses.append(f"{alias}.subcategory_id = ?")
            params.append(scope.subcategory_id)
        elif isinstance(scope, InCategory):
            clauses.append(f"{alias}.category_id = ? AND {alias}.subcategory_id IS NULL")
            params.append(scope.category_id)
        elif isinstance(scope, Unlisted):
            clauses.append(f"{alias}.category_id IS NULL")

        term = self.search_term
        if term:
            like = f"%{_escape_like(term.casefold())}%"
            clauses.append(
                f"(casefold({alias}.title) LIKE ? ESCAPE '\\' OR casefold({alias}.content) LIKE ? ESCAPE '\\')"
            )
            params.extend([like, like])

        where = " AND ".join(clauses) if clauses else "1=1"
        column = f"{alias}.{self.sort_field.value}"
        if self.sort_field in _TEXT_FIELDS:
            column = f"casefold({column})"
        direction = self.direction.value
        order_by = f"{column} {direction}, {alias}.id {direction}"
        return where, order_by, params


__all__ = [
    "ALL_NOTES",
    "AllNotes",
    "InCategory",
    "InSubcategory",
    "NoteQuery",
    "Scope",
    "SortDirection",
    "SortField",
    "UNLISTED",
    "Unlisted",
]

"""Notebook storage, queries and import/export."""
from .export_import import CancelToken, ExportImportManager, ImportSummary
from .models import Category, Note, NoteCounts, SubCategory
from .notebook import UNSET, NotebookManager
from .query import NoteQuery, SortDirection, SortField

__all__ = [
    'CancelToken',
    'Category',
    'ExportImportManager',
    'ImportSummary',
    'Note',
    'NoteCounts',
    'NoteQuery',
    'NotebookManager',
    'SortDirection',
    'SortField',
    'SubCategory',
    'UNSET',
]

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# the logger and data paths resolve their directories on first import
_STATE_DIR = tempfile.mkdtemp(prefix="notekeeper-tests-")
for _name in ("XDG_DATA_HOME", "XDG_CACHE_HOME"):
    os.environ[_name] = os.path.join(_STATE_DIR, _name.lower())


@pytest.fixture
def database(tmp_path):
    from notekeeper.db import Database

    db = Database(tmp_path / "notes.sqlite3")
    yield db
    db.close()


@pytest.fixture
def notebook(database):
    from notekeeper.manager import NotebookManager

    return NotebookManager(database)


@pytest.fixture
def exporter(notebook):
    from notekeeper.manager import ExportImportManager

    return ExportImportManager(notebook, dedupe_notes=True)

"""Helpers for resolving XDG data and cache locations."""

from __future__ import annotations

import importlib
import os
from pathlib import Path

GLib = None
try:  # pragma: no cover - fallback for test environments without GTK
    gi_repository = importlib.import_module("gi.repository")
    GLib = getattr(gi_repository, "GLib")
except (ImportError, AttributeError, ValueError):  # pragma: no cover - test fallback
    GLib = None

APP_NAMESPACE = "notekeeper"


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _xdg_base(name: str, fallback: str) -> Path:
    env_var = {
        "data": "XDG_DATA_HOME",
        "cache": "XDG_CACHE_HOME",
    }[name]
    # an explicit override wins so tests and portable installs can relocate state
    base = os.environ.get(env_var)
    if not base and GLib is not None:
        getter = getattr(GLib, f"get_user_{name}_dir")
        return Path(getter()) / APP_NAMESPACE
    if not base:
        base = os.path.join(Path.home(), fallback)
    return Path(base) / APP_NAMESPACE


def user_data_dir() -> Path:
    return _ensure(_xdg_base("data", ".local/share"))


def user_cache_dir() -> Path:
    return _ensure(_xdg_base("cache", ".cache"))


def log_dir() -> Path:
    return _ensure(user_data_dir() / "logs")


def exports_dir() -> Path:
    return _ensure(user_data_dir() / "exports")


def db_path() -> Path:
    return user_data_dir() / "notes.sqlite3"


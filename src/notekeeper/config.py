"""Runtime configuration.

Values come from the environment so a source checkout and an installed
build behave the same. A packaged build may ship a generated
``build_config.py`` next to this module to override the defaults.
"""

from __future__ import annotations

import os


def _truthy_env(name: str, default: str = "0") -> bool:
    value = os.getenv(name, default)
    return value not in {"0", "false", "False", "no", ""}


DEV_PROFILE_ENABLED: bool = _truthy_env("NOTEKEEPER_DEV_PROFILE", "0")
IMPORT_DEDUPE_NOTES: bool = _truthy_env("NOTEKEEPER_IMPORT_DEDUPE_NOTES", "1")
LOG_LEVEL: str = os.getenv("NOTEKEEPER_LOG_LEVEL", "INFO").upper()

APP_ID = "org.example.Notekeeper"
APP_NAME = "Notekeeper"
APP_VERSION = "0.1.0"

EXPORT_FILE_PREFIX = "NotesExport_"
EXPORT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

try:  # pragma: no cover - optional override generated at build time
    from . import build_config as _generated  # type: ignore
except ImportError:  # pragma: no cover - development fallback
    _generated = None

if _generated:
    DEV_PROFILE_ENABLED = bool(getattr(_generated, "DEV_PROFILE_ENABLED", DEV_PROFILE_ENABLED))
    IMPORT_DEDUPE_NOTES = bool(getattr(_generated, "IMPORT_DEDUPE_NOTES", IMPORT_DEDUPE_NOTES))
    APP_ID = getattr(_generated, "APP_ID", APP_ID)
    APP_NAME = getattr(_generated, "APP_NAME", APP_NAME)
    APP_VERSION = getattr(_generated, "APP_VERSION", APP_VERSION)

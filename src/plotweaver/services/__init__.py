"""Service layer helpers (settings, persistence, autosave, backups)."""

from .autosave import DebouncedAutosave
from .errors import BackupFormatError, PlotWeaverError, ProjectNotFoundError
from .project_store import JsonProjectStore, ProjectStore
from .settings import Settings, SettingsStore

__all__ = [
    "BackupFormatError",
    "DebouncedAutosave",
    "JsonProjectStore",
    "PlotWeaverError",
    "ProjectNotFoundError",
    "ProjectStore",
    "Settings",
    "SettingsStore",
]

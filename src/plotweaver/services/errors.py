"""Exceptions raised by the persistence and backup services."""

from __future__ import annotations

from typing import Any, Mapping


class PlotWeaverError(Exception):
    """Base class for service-level failures."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details) if isinstance(details, Mapping) else None


class ProjectNotFoundError(PlotWeaverError):
    """Raised when a project store has no project with the requested id."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project '{project_id}' not found.", details={"project_id": project_id})
        self.project_id = project_id


class BackupFormatError(PlotWeaverError):
    """Raised when an imported backup file does not have the expected shape."""


__all__ = ["BackupFormatError", "PlotWeaverError", "ProjectNotFoundError"]

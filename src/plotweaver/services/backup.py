"""Export and import of whole-library backups."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from jsonschema import Draft7Validator

from ..editor.document_model import Project
from .errors import BackupFormatError

LOGGER = logging.getLogger(__name__)

INVALID_BACKUP_MESSAGE = "Invalid file format. The file should be an array of projects."
BACKUP_FILENAME_PREFIX = "ai-writing-assistant-backup-"

BACKUP_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "items": {
        "type": "object",
        "required": ["id", "title"],
        "properties": {
            "id": {"type": "string", "minLength": 1},
            "title": {"type": "string"},
            "outline": {"type": "array", "items": {"type": "object"}},
            "characters": {"type": "array", "items": {"type": "object"}},
            "taskLists": {"type": "array", "items": {"type": "object"}},
            "notes": {"type": ["array", "string"]},
        },
    },
}

_VALIDATOR = Draft7Validator(BACKUP_SCHEMA)


def export_projects(projects: Iterable[Project]) -> str:
    """Serialize every project, in order, as a JSON array."""
    return json.dumps([project.to_dict() for project in projects], indent=2, ensure_ascii=False)


def export_filename(now: datetime | None = None) -> str:
    """``ai-writing-assistant-backup-<timestamp>.json`` with a filesystem-safe timestamp."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    stamp = moment.isoformat(timespec="milliseconds") + "Z"
    return f"{BACKUP_FILENAME_PREFIX}{stamp.replace(':', '-').replace('.', '-')}.json"


def import_projects(text: str) -> list[Project]:
    """Parse a backup produced by :func:`export_projects`.

    Raises:
        BackupFormatError: If the text is not JSON or does not match the
            backup schema. ``details`` carries the failing schema path.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BackupFormatError(
            INVALID_BACKUP_MESSAGE,
            details={"reason": exc.msg, "line": exc.lineno, "column": exc.colno},
        ) from exc

    issues = sorted(_VALIDATOR.iter_errors(payload), key=lambda issue: list(issue.absolute_path))
    if issues:
        first = issues[0]
        LOGGER.warning("Rejected backup file: %s", first.message)
        raise BackupFormatError(
            INVALID_BACKUP_MESSAGE,
            details={
                "path": list(first.absolute_path),
                "schema_path": list(first.absolute_schema_path),
                "reason": first.message,
            },
        )
    return [Project.from_dict(item) for item in payload]


def merge_projects(existing: Sequence[Project], imported: Sequence[Project]) -> list[Project]:
    """Replace projects that share an id, then append the new ones in import order."""
    incoming = {project.id: project for project in imported}
    merged = [incoming.pop(project.id, project) for project in existing]
    merged.extend(incoming.pop(project.id) for project in imported if project.id in incoming)
    return merged


__all__ = [
    "BACKUP_FILENAME_PREFIX",
    "BACKUP_SCHEMA",
    "INVALID_BACKUP_MESSAGE",
    "export_filename",
    "export_projects",
    "import_projects",
    "merge_projects",
]

"""Project persistence boundary and its JSON file implementation."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from ..editor.document_model import Project
from ..utils.file_io import read_text, write_text
from .errors import PlotWeaverError, ProjectNotFoundError

LOGGER = logging.getLogger(__name__)


class ProjectStore(Protocol):
    """Where projects are loaded from and saved to."""

    async def load(self, project_id: str) -> Project:
        ...

    async def save(self, project: Project) -> Project:
        ...

    async def list_projects(self) -> list[Project]:
        ...


class JsonProjectStore:
    """Stores each project as ``<id>.json`` inside ``directory``.

    Writes go through a temp file and a rename, so an interrupted save leaves
    the previous file intact. File IO runs in a worker thread.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, project_id: str) -> Path:
        if not project_id or Path(project_id).name != project_id:
            raise ValueError(f"Invalid project id: {project_id!r}")
        return self._directory / f"{project_id}.json"

    async def load(self, project_id: str) -> Project:
        """Read one project.

        Raises:
            ProjectNotFoundError: If no file exists for ``project_id``.
            PlotWeaverError: If the file is not a valid project document.
        """
        path = self.path_for(project_id)
        try:
            text = await asyncio.to_thread(read_text, path)
        except FileNotFoundError as exc:
            raise ProjectNotFoundError(project_id) from exc
        return self._parse(path, text)

    async def save(self, project: Project) -> Project:
        """Write ``project`` and return it with ``last_modified`` stamped.

        The stamp is on the returned copy only; the caller decides whether to
        fold it back into its own state.
        """
        stamped = replace(project, last_modified=time.time())
        body = json.dumps(stamped.to_dict(), indent=2, ensure_ascii=False)
        path = self.path_for(project.id)
        await asyncio.to_thread(write_text, path, body + "\n")
        LOGGER.debug("Saved project %s to %s", project.id, path)
        return stamped

    async def list_projects(self) -> list[Project]:
        """Every readable project in the directory, most recently saved first."""
        paths = await asyncio.to_thread(self._project_paths)
        projects: list[Project] = []
        for path in paths:
            try:
                text = await asyncio.to_thread(read_text, path)
                projects.append(self._parse(path, text))
            except (OSError, PlotWeaverError) as exc:
                LOGGER.warning("Skipping unreadable project file %s: %s", path, exc)
        projects.sort(key=lambda project: project.last_modified or 0.0, reverse=True)
        return projects

    async def delete(self, project_id: str) -> bool:
        path = self.path_for(project_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        return True

    def _project_paths(self) -> list[Path]:
        if not self._directory.exists():
            return []
        return sorted(self._directory.glob("*.json"))

    @staticmethod
    def _parse(path: Path, text: str) -> Project:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PlotWeaverError(f"Project file {path.name} is not valid JSON: {exc.msg}") from exc
        if not isinstance(payload, dict) or not payload.get("id"):
            raise PlotWeaverError(f"Project file {path.name} does not contain a project.")
        return Project.from_dict(payload)


__all__ = ["JsonProjectStore", "ProjectStore"]

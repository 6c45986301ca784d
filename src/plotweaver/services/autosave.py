"""Debounced autosave for the open project.

Commits mark the project unsaved and (re)start a quiet-period timer; when the
timer fires the latest snapshot is written through the project store. Bursts
of commits therefore produce a single write.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..editor.document_model import Project
from ..workspace.events import EventBus, ProjectCommitted, SaveStatusChanged
from ..workspace.models import SaveStatus
from .project_store import ProjectStore

LOGGER = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 1.5


class DebouncedAutosave:
    """Saves the watched project after ``delay`` seconds without commits.

    Events Emitted:
        - SaveStatusChanged: On every status transition of the watched project
    """

    def __init__(
        self,
        store: ProjectStore,
        event_bus: EventBus,
        *,
        delay: float = DEFAULT_AUTOSAVE_DELAY,
    ) -> None:
        self._store = store
        self._bus = event_bus
        self._delay = max(0.0, delay)
        self._project_id: str | None = None
        self._pending: Project | None = None
        self._timer: asyncio.Task[None] | None = None
        self._saves: set[asyncio.Task[None]] = set()
        self._save_lock = asyncio.Lock()
        self._status = SaveStatus.SAVED
        self._last_error: str | None = None
        self._bus.subscribe(ProjectCommitted, self.on_project_committed)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def project_id(self) -> str | None:
        return self._project_id

    @property
    def delay(self) -> float:
        return self._delay

    def has_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def watch(self, project: Project) -> None:
        """Start tracking ``project``; a pending save for another project is dropped."""
        if self._project_id != project.id:
            self.cancel()
        self._project_id = project.id
        self._set_status(SaveStatus.SAVED)

    def on_project_committed(self, event: ProjectCommitted) -> None:
        if self._project_id is None:
            return
        if event.project.id != self._project_id:
            LOGGER.debug("Autosave ignoring commit for unwatched project %s", event.project.id)
            return
        if event.reason == "load":
            # The loaded snapshot came from the store; an older pending one must not overwrite it.
            if self._drop_pending():
                LOGGER.debug("Autosave dropped pending snapshot of %s after load", self._project_id)
            self._set_status(SaveStatus.SAVED)
            return
        self.schedule(event.project)

    def schedule(self, project: Project) -> None:
        """Mark ``project`` unsaved and restart the quiet-period timer."""
        self._pending = project
        self._set_status(SaveStatus.UNSAVED)
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_save())

    def cancel(self) -> None:
        """Stop the pending timer and stop watching the current project.

        A save already in flight still writes, but no longer reports status.
        """
        self._drop_pending()
        self._project_id = None

    async def flush(self) -> None:
        """Write any pending snapshot now and wait for in-flight saves."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
        self._timer = None
        if self._pending is not None:
            await self._save(self._take_pending())
        if self._saves:
            await asyncio.gather(*self._saves, return_exceptions=True)

    async def aclose(self) -> None:
        await self.flush()
        self._bus.unsubscribe(ProjectCommitted, self.on_project_committed)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _wait_then_save(self) -> None:
        await asyncio.sleep(self._delay)
        project = self._take_pending()
        if project is None:
            return
        # The write runs in its own task so a later commit cannot cancel it.
        task = asyncio.get_running_loop().create_task(self._save(project))
        self._saves.add(task)
        task.add_done_callback(self._saves.discard)

    def _drop_pending(self) -> bool:
        dropped = self.has_pending() or self._pending is not None
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        self._pending = None
        return dropped

    def _take_pending(self) -> Project | None:
        project, self._pending = self._pending, None
        return project

    async def _save(self, project: Project | None) -> None:
        if project is None:
            return
        async with self._save_lock:
            if project.id == self._project_id:
                self._set_status(SaveStatus.SAVING)
            try:
                await self._store.save(project)
            except Exception as exc:
                LOGGER.error("Autosave failed for project %s: %s", project.id, exc)
                if project.id == self._project_id:
                    self._set_status(SaveStatus.ERROR, str(exc) or type(exc).__name__)
                return
            if project.id != self._project_id:
                LOGGER.debug("Autosave for %s finished after navigation; status not reported", project.id)
                return
            if self._pending is None:
                self._set_status(SaveStatus.SAVED)

    def _set_status(self, status: SaveStatus, error: str | None = None) -> None:
        self._last_error = error
        if status == self._status and error is None:
            return
        self._status = status
        if self._project_id is not None:
            self._bus.publish(
                SaveStatusChanged(project_id=self._project_id, status=status.value, error=error)
            )


__all__ = ["DEFAULT_AUTOSAVE_DELAY", "DebouncedAutosave"]

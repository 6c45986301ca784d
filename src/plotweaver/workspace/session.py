"""Editor session domain service.

Binds the undo history, the selection tracker and the event bus around one
open project. Every present-state change goes through this class, so the
selection is reconciled and observers are notified exactly once per change.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..editor.document_model import ItemRef, Project, SelectableItem
from ..editor.history import DEFAULT_HISTORY_LIMIT, HistoryManager
from ..editor.selection import SelectionTracker
from .events import EventBus, ProjectCommitted, SelectionChanged

LOGGER = logging.getLogger(__name__)


class EditorSession:
    """The open project plus its history and selection.

    Direct user edits and AI tool handlers both commit through
    :meth:`commit`; the tool handlers only see the ``project`` property and
    ``commit`` method.

    Events Emitted:
        - ProjectCommitted: After commit, undo, redo or load changes the present
        - SelectionChanged: When the selection is replaced, re-resolved or dropped
    """

    def __init__(
        self,
        project: Project,
        event_bus: EventBus | None = None,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        """Initialize the session.

        Args:
            project: The initial present snapshot.
            event_bus: The bus to publish on. A private one is created if omitted.
            history_limit: Maximum number of undo steps kept.
        """
        self._bus = event_bus if event_bus is not None else EventBus()
        self._history: HistoryManager[Project] = HistoryManager(project, max_size=history_limit)
        self._selection = SelectionTracker()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def project(self) -> Project:
        return self._history.present

    @property
    def history(self) -> HistoryManager[Project]:
        return self._history

    @property
    def selection(self) -> SelectionTracker:
        return self._selection

    @property
    def selected_item(self) -> SelectableItem | None:
        return self._selection.item

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def commit(self, update_fn: Callable[[Project], Project]) -> bool:
        """Apply ``update_fn`` to the present project.

        Returns:
            True if the project changed. A no-op leaves history and
            selection untouched and publishes nothing.
        """
        if not self._history.commit(update_fn):
            return False
        self._after_transition("commit")
        return True

    def undo(self) -> bool:
        if not self._history.undo():
            return False
        self._after_transition("undo")
        return True

    def redo(self) -> bool:
        if not self._history.redo():
            return False
        self._after_transition("redo")
        return True

    def load(self, project: Project) -> None:
        """Replace the present with ``project`` and forget all history."""
        self._history.reset(project)
        LOGGER.debug("EditorSession.load: project_id=%s", project.id)
        self._after_transition("load")

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, ref: ItemRef | None) -> SelectableItem | None:
        """Open the item named by ``ref``; an unknown ref clears the selection."""
        before = (self._selection.ref, self._selection.item)
        item = self._selection.select(self.project, ref)
        if (self._selection.ref, self._selection.item) != before:
            self._publish_selection()
        return item

    def clear_selection(self) -> None:
        if self._selection.ref is None:
            return
        self._selection.clear()
        self._publish_selection()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _after_transition(self, reason: str) -> None:
        selection_changed = self._selection.reconcile(self.project)
        self._bus.publish(
            ProjectCommitted(
                project=self.project,
                reason=reason,
                can_undo=self.can_undo,
                can_redo=self.can_redo,
            )
        )
        if selection_changed:
            self._publish_selection()

    def _publish_selection(self) -> None:
        ref = self._selection.ref
        self._bus.publish(
            SelectionChanged(
                kind=ref.kind.value if ref is not None else None,
                item_id=ref.id if ref is not None else None,
            )
        )


__all__ = ["EditorSession"]

"""Tracks the item open in the main editing surface across document changes."""

from __future__ import annotations

import logging

from . import outline_tree
from .document_model import ItemKind, ItemRef, Project, SelectableItem

LOGGER = logging.getLogger(__name__)


def resolve_item(project: Project, ref: ItemRef) -> SelectableItem | None:
    """Look ``ref`` up in ``project``; outline lookups search the whole tree."""

    if ref.kind is ItemKind.OUTLINE:
        return outline_tree.find_by_id(project.outline, ref.id)
    if ref.kind is ItemKind.CHARACTER:
        collection: tuple[SelectableItem, ...] = project.characters
    elif ref.kind is ItemKind.NOTE:
        collection = project.notes
    else:
        collection = project.task_lists
    return next((item for item in collection if item.id == ref.id), None)


class SelectionTracker:
    """Holds a view reference plus the object it resolved to last.

    The resolved object is a snapshot value, so it goes stale on every
    present-state change; :meth:`reconcile` must run after each one.
    """

    __slots__ = ("_ref", "_item")

    def __init__(self) -> None:
        self._ref: ItemRef | None = None
        self._item: SelectableItem | None = None

    @property
    def ref(self) -> ItemRef | None:
        return self._ref

    @property
    def item(self) -> SelectableItem | None:
        return self._item

    def select(self, project: Project, ref: ItemRef | None) -> SelectableItem | None:
        """Select ``ref``; an unresolvable reference clears the selection."""
        if ref is None:
            self.clear()
            return None
        item = resolve_item(project, ref)
        if item is None:
            LOGGER.debug("select: %s %s not found; clearing selection", ref.kind.value, ref.id)
            self.clear()
            return None
        self._ref = ref
        self._item = item
        return item

    def clear(self) -> None:
        self._ref = None
        self._item = None

    def reconcile(self, project: Project) -> bool:
        """Re-resolve the selection against ``project``.

        Returns:
            True if the selected object changed or the selection was dropped.
        """
        if self._ref is None:
            return False
        fresh = resolve_item(project, self._ref)
        if fresh is None:
            LOGGER.debug("reconcile: %s %s is gone; clearing selection", self._ref.kind.value, self._ref.id)
            self.clear()
            return True
        changed = fresh != self._item
        self._item = fresh
        return changed


__all__ = ["SelectionTracker", "resolve_item"]

"""Bounded, branch-free undo/redo over immutable document snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

S = TypeVar("S")


@dataclass(slots=True, frozen=True)
class HistoryState(Generic[S]):
    """The three history buffers.

    Attributes:
        past: Prior snapshots, oldest first.
        present: The current snapshot.
        future: Snapshots available for redo, nearest first.
    """

    past: tuple[S, ...]
    present: S
    future: tuple[S, ...] = ()


class HistoryManager(Generic[S]):
    """Undo/redo stack over whole-document snapshots.

    Snapshots must be immutable values with structural equality; a commit
    whose result equals the present leaves history untouched.

    Example::

        history = HistoryManager(project)
        history.commit(lambda p: project_ops.delete_section(p, "s1"))
        history.undo()
    """

    __slots__ = ("_state", "_max_size")

    def __init__(self, initial: S, *, max_size: int = DEFAULT_HISTORY_LIMIT) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._state: HistoryState[S] = HistoryState(past=(), present=initial)
        self._max_size = max_size

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> HistoryState[S]:
        return self._state

    @property
    def present(self) -> S:
        return self._state.present

    @property
    def past(self) -> tuple[S, ...]:
        return self._state.past

    @property
    def future(self) -> tuple[S, ...]:
        return self._state.future

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def can_undo(self) -> bool:
        return bool(self._state.past)

    @property
    def can_redo(self) -> bool:
        return bool(self._state.future)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def commit(self, update_fn: Callable[[S], S]) -> bool:
        """Apply ``update_fn`` to the present and record the prior snapshot.

        Returns:
            True if the present changed, False for a no-op mutation.
        """
        current = self._state.present
        updated = update_fn(current)
        if updated is current or updated == current:
            return False
        self._state = HistoryState(
            past=self._bounded(self._state.past + (current,)),
            present=updated,
            future=(),
        )
        LOGGER.debug("History commit: past=%d", len(self._state.past))
        return True

    def undo(self) -> bool:
        state = self._state
        if not state.past:
            return False
        self._state = HistoryState(
            past=state.past[:-1],
            present=state.past[-1],
            future=(state.present,) + state.future,
        )
        LOGGER.debug("History undo: past=%d future=%d", len(self._state.past), len(self._state.future))
        return True

    def redo(self) -> bool:
        state = self._state
        if not state.future:
            return False
        self._state = HistoryState(
            past=self._bounded(state.past + (state.present,)),
            present=state.future[0],
            future=state.future[1:],
        )
        LOGGER.debug("History redo: past=%d future=%d", len(self._state.past), len(self._state.future))
        return True

    def reset(self, present: S) -> None:
        """Replace the present and forget both stacks."""
        self._state = HistoryState(past=(), present=present)

    def _bounded(self, past: tuple[S, ...]) -> tuple[S, ...]:
        if len(past) > self._max_size:
            return past[-self._max_size :]
        return past


__all__ = ["DEFAULT_HISTORY_LIMIT", "HistoryManager", "HistoryState"]

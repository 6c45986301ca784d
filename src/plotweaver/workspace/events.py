"""Event bus infrastructure for decoupled communication with the engine.

Front ends, autosave and the AI turn manager observe the editor session
through these events instead of holding references to each other.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from ..editor.document_model import Project

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events.

    Subclasses use ``@dataclass(slots=True)`` as well::

        @dataclass(slots=True)
        class NoteRenamed(Event):
            note_id: str
            title: str
    """

    pass


# =============================================================================
# Document Events
# =============================================================================


@dataclass(slots=True)
class ProjectCommitted(Event):
    """Emitted after every change to the session's present project.

    Attributes:
        project: The new present snapshot.
        reason: The transition that produced it: commit, undo, redo or load.
        can_undo: Whether an undo is available afterwards.
        can_redo: Whether a redo is available afterwards.
    """

    project: Project
    reason: str
    can_undo: bool
    can_redo: bool


@dataclass(slots=True)
class SelectionChanged(Event):
    """Emitted when the selected item is replaced, re-resolved or dropped.

    Attributes:
        kind: The item kind value, or None when nothing is selected.
        item_id: The selected item id, or None when nothing is selected.
    """

    kind: str | None
    item_id: str | None


@dataclass(slots=True)
class SaveStatusChanged(Event):
    """Emitted when the autosave status of a project changes.

    Attributes:
        project_id: The project the status applies to.
        status: One of ``unsaved``, ``saving``, ``saved`` or ``error``.
        error: The failure message when ``status`` is ``error``.
    """

    project_id: str
    status: str
    error: str | None = None


# =============================================================================
# AI Turn Events
# =============================================================================


@dataclass(slots=True)
class AITurnStarted(Event):
    turn_id: str
    prompt: str


@dataclass(slots=True)
class AITurnToolExecuted(Event):
    """Emitted once per tool call dispatched during a turn.

    Attributes:
        turn_id: The AI turn the call belongs to.
        tool_name: The registered tool name.
        tool_call_id: The backend's id for the call.
        arguments: Raw JSON arguments as received.
        result: The message reported back to the backend.
        success: Whether the tool succeeded.
        duration_ms: Execution time in milliseconds.
    """

    turn_id: str
    tool_name: str
    tool_call_id: str
    arguments: str = ""
    result: str = ""
    success: bool = True
    duration_ms: float = 0.0


@dataclass(slots=True)
class AITurnCompleted(Event):
    turn_id: str
    success: bool
    edit_count: int
    response_text: str


@dataclass(slots=True)
class AITurnFailed(Event):
    turn_id: str
    error: str


@dataclass(slots=True)
class AITurnCanceled(Event):
    turn_id: str


# =============================================================================
# Conversation Events
# =============================================================================


@dataclass(slots=True)
class ChatMessageAdded(Event):
    """Emitted when a message is appended to the visible transcript.

    Attributes:
        role: ``user`` or ``model``.
        text: The message text.
    """

    role: str
    text: str


@dataclass(slots=True)
class NoticePosted(Event):
    message: str


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references where possible so that an
    observer going away does not need to unsubscribe explicitly.

    Example::

        bus = EventBus()
        bus.subscribe(ProjectCommitted, autosave.on_project_committed)
        bus.publish(ProjectCommitted(project=p, reason="commit", can_undo=True, can_redo=False))

    Thread Safety:
        Not thread-safe. Use it from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler for events of exactly ``event_type``.

        Subscribing the same handler twice results in two invocations.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke every handler for the event's type, in registration order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            logger.debug("No handlers for event type %s", event_type.__name__)
            return

        logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                # Some callables can't be weakly referenced
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Any) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    # Document events
    "ProjectCommitted",
    "SelectionChanged",
    "SaveStatusChanged",
    # AI turn events
    "AITurnStarted",
    "AITurnToolExecuted",
    "AITurnCompleted",
    "AITurnFailed",
    "AITurnCanceled",
    # Conversation events
    "ChatMessageAdded",
    "NoticePosted",
]

"""State models for AI turns, the chat transcript and autosave.

These dataclasses and enums are owned by the workspace services and are
carried on events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


ChatRole = Literal["user", "model"]


class AITurnStatus(Enum):
    """Status of an AI turn in its lifecycle.

    Values:
        PENDING: Turn is queued but not yet started.
        RUNNING: Turn is awaiting the backend or executing tool calls.
        COMPLETED: Turn finished successfully.
        FAILED: The backend call raised.
        CANCELED: Turn was canceled by the user.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass(slots=True)
class AITurnState:
    """State of an AI turn during execution.

    Attributes:
        turn_id: Unique identifier for this turn.
        prompt: The user message that initiated this turn.
        status: Current status of the turn.
        edit_count: Number of successful tool calls that changed the project.
        tool_calls: Names of the tools dispatched, in order.
        error: Error message if the turn failed.
        created_at: When the turn was initiated.
        completed_at: When the turn finished (success, failure, or cancel).
    """

    turn_id: str
    prompt: str
    status: AITurnStatus = AITurnStatus.PENDING
    edit_count: int = 0
    tool_calls: list[str] = field(default_factory=list)
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.status == AITurnStatus.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.status in (
            AITurnStatus.COMPLETED,
            AITurnStatus.FAILED,
            AITurnStatus.CANCELED,
        )

    @property
    def is_successful(self) -> bool:
        return self.status == AITurnStatus.COMPLETED

    def mark_running(self) -> None:
        self.status = AITurnStatus.RUNNING

    def mark_completed(self) -> None:
        self.status = AITurnStatus.COMPLETED
        self.completed_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        self.status = AITurnStatus.FAILED
        self.error = error
        self.completed_at = _utcnow()

    def mark_canceled(self) -> None:
        self.status = AITurnStatus.CANCELED
        self.completed_at = _utcnow()


@dataclass(slots=True)
class ChatMessage:
    """One entry of the visible transcript.

    The transcript is what a front end shows. It is separate from the
    conversation history sent to the backend, which also carries tool calls
    and tool results.
    """

    role: ChatRole
    text: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "text": self.text}


class SaveStatus(Enum):
    """Persistence state of the open project."""

    UNSAVED = "unsaved"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


__all__ = [
    "AITurnState",
    "AITurnStatus",
    "ChatMessage",
    "ChatRole",
    "SaveStatus",
]

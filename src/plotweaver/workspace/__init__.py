"""Editor session, AI turn management and the event bus."""

from .ai_turn_manager import AITurnManager
from .events import EventBus
from .models import AITurnState, AITurnStatus, ChatMessage, SaveStatus
from .session import EditorSession

__all__ = [
    "AITurnManager",
    "AITurnState",
    "AITurnStatus",
    "ChatMessage",
    "EditorSession",
    "EventBus",
    "SaveStatus",
]

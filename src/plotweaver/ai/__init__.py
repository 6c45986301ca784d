"""AI client, prompts, and tool wiring."""

from .client import AIClient, AIResponse, ClientSettings, ConversationBackend, ToolCallRequest

__all__ = ["AIClient", "AIResponse", "ClientSettings", "ConversationBackend", "ToolCallRequest"]

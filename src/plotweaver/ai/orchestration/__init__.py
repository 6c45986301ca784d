"""Orchestration helpers that route model tool calls to project tools."""

from .tool_dispatcher import DispatchResult, ToolDispatcher

__all__ = ["DispatchResult", "ToolDispatcher"]

"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from plotweaver.ai.client import AIResponse, ToolCallRequest
from plotweaver.workspace.events import Event, EventBus


def tool_call(name: str, arguments: Mapping[str, Any] | str, call_id: str | None = None) -> ToolCallRequest:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return ToolCallRequest(id=call_id or f"call-{name}", name=name, arguments_json=raw)


class ScriptedBackend:
    """Conversation backend that replays canned responses in order.

    Each ``converse`` call records a copy of the history it was given. An
    exception in the script is raised instead of returned. ``generated`` is
    the project draft handed out by ``generate_project``.
    """

    def __init__(
        self,
        *responses: AIResponse | Exception,
        completion: str | Exception | None = None,
        generated: dict[str, Any] | Exception | None = None,
    ) -> None:
        self._responses = list(responses)
        self.completion = completion
        self.generated = generated
        self.generate_calls: list[tuple[str, str, str]] = []
        self.converse_calls: list[dict[str, Any]] = []
        self.complete_calls: list[list[dict[str, Any]]] = []

    async def converse(
        self,
        history: Sequence[Mapping[str, Any]],
        project: Any,
        selected_item: Any,
        system_prompt: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> AIResponse:
        self.converse_calls.append(
            {
                "history": [dict(entry) for entry in history],
                "project": project,
                "selected_item": selected_item,
                "system_prompt": system_prompt,
                "tools": list(tools or []),
            }
        )
        if not self._responses:
            raise AssertionError("ScriptedBackend ran out of responses")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        response_format: Mapping[str, Any] | None = None,
    ) -> str | None:
        self.complete_calls.append([dict(message) for message in messages])
        if isinstance(self.completion, Exception):
            raise self.completion
        return self.completion

    async def generate_project(self, title: str, genre: str, pitch: str) -> dict[str, Any]:
        self.generate_calls.append((title, genre, pitch))
        if isinstance(self.generated, Exception):
            raise self.generated
        return dict(self.generated or {})


class EventRecorder:
    """Subscribes to the given event types and keeps every event in order."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]

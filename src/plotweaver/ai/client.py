"""Async AI client wrapper built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Protocol, Sequence, cast

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError, RateLimitError
from openai.types.chat import ChatCompletionMessageParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..editor.document_model import Project, SelectableItem
from .prompts import build_system_prompt, project_generation_messages

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    temperature: float | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False


@dataclass(slots=True, frozen=True)
class ToolCallRequest:
    """One function call requested by the model.

    Attributes:
        id: The backend's call id, echoed back on the tool result message.
        name: Registered tool name.
        arguments_json: Raw JSON arguments exactly as the model produced them.
    """

    id: str
    name: str
    arguments_json: str = "{}"

    def to_message_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json},
        }


@dataclass(slots=True, frozen=True)
class AIResponse:
    """A single assistant reply: optional text plus zero or more tool calls."""

    text: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = field(default_factory=tuple)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ConversationBackend(Protocol):
    """What the turn manager needs from a model provider."""

    async def converse(
        self,
        history: Sequence[Mapping[str, Any]],
        project: Project,
        selected_item: SelectableItem | None,
        system_prompt: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> AIResponse:
        ...

    async def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        response_format: Mapping[str, Any] | None = None,
    ) -> str | None:
        ...

    async def generate_project(self, title: str, genre: str, pitch: str) -> dict[str, Any]:
        ...


class AIClient:
    """Async chat client with retry semantics.

    Each call is a single non-streamed chat completion. Transient transport
    and API failures are retried with exponential backoff; the last failure
    is re-raised to the caller.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def converse(
        self,
        history: Sequence[Mapping[str, Any]],
        project: Project,
        selected_item: SelectableItem | None,
        system_prompt: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> AIResponse:
        """Send the conversation with the project context as system message.

        Args:
            history: Prior user, assistant and tool messages, oldest first.
            project: The project the context is built from.
            selected_item: The item currently open, if any.
            system_prompt: Persona instructions placed before the context.
            tools: OpenAI tool definitions the model may call.
        """

        messages: list[Mapping[str, Any]] = [
            {"role": "system", "content": build_system_prompt(system_prompt, project, selected_item)},
            *history,
        ]
        payload = self._build_chat_payload(
            messages=self._coerce_messages(messages),
            tools=tools,
        )
        message = await self._create(payload)

        tool_calls: list[ToolCallRequest] = []
        for call in getattr(message, "tool_calls", None) or ():
            function = getattr(call, "function", None)
            if getattr(call, "type", "function") != "function" or function is None:
                LOGGER.debug("Skipping non-function tool call: %r", call)
                continue
            tool_calls.append(
                ToolCallRequest(
                    id=str(call.id),
                    name=str(function.name),
                    arguments_json=function.arguments or "{}",
                )
            )
        return AIResponse(text=getattr(message, "content", None), tool_calls=tuple(tool_calls))

    async def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        response_format: Mapping[str, Any] | None = None,
    ) -> str | None:
        """Run a tool-free completion and return the reply text."""

        payload = self._build_chat_payload(
            messages=self._coerce_messages(messages),
            tools=None,
            response_format=response_format,
        )
        message = await self._create(payload)
        return getattr(message, "content", None)

    async def generate_project(self, title: str, genre: str, pitch: str) -> dict[str, Any]:
        """Ask the model for a starting outline, cast and notes as one JSON object.

        Raises:
            ValueError: If the reply is empty or is not a JSON object.
        """

        content = await self.complete(
            project_generation_messages(title, genre, pitch),
            response_format={"type": "json_object"},
        )
        if not content or not content.strip():
            raise ValueError("AI returned an empty response.")
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ValueError(f"AI response is not valid JSON: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise ValueError("AI response must be a JSON object.")
        LOGGER.debug("Generated project draft with keys %s for %r", sorted(payload), title)
        return payload

    async def _create(self, payload: Dict[str, Any]) -> Any:
        LOGGER.debug(
            "Requesting chat completion via %s with %s message(s)",
            self._settings.model,
            len(payload["messages"]),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        async for attempt in self._retrying():
            with attempt:
                response = await self._client.chat.completions.create(**payload)
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise RuntimeError("AI response contained no choices")
        return choices[0].message

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIError,
                    APIStatusError,
                    APIConnectionError,
                    RateLimitError,
                    httpx.TimeoutException,
                )
            ),
        )

    def _coerce_messages(
        self, messages: Iterable[Mapping[str, Any] | ChatCompletionMessageParam]
    ) -> List[ChatCompletionMessageParam]:
        normalized: List[ChatCompletionMessageParam] = []
        for message in messages:
            if isinstance(message, MutableMapping):
                normalized.append(cast(ChatCompletionMessageParam, dict(message)))
            else:
                try:
                    normalized.append(cast(ChatCompletionMessageParam, dict(message)))
                except TypeError as exc:
                    raise TypeError("Messages must be mapping-like objects") from exc
        if not normalized:
            raise ValueError("At least one message is required to start a chat")
        return normalized

    def _build_chat_payload(
        self,
        *,
        messages: Sequence[ChatCompletionMessageParam],
        tools: Sequence[Mapping[str, Any]] | None,
        response_format: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": list(messages),
        }

        merged_metadata = self._merge_metadata()
        if merged_metadata:
            payload["metadata"] = merged_metadata
        if tools:
            payload["tools"] = [dict(tool) for tool in tools]
            payload["tool_choice"] = "auto"
        if response_format:
            payload["response_format"] = dict(response_format)
        if self._settings.temperature is not None:
            payload["temperature"] = self._settings.temperature

        return payload

    def _merge_metadata(self) -> Dict[str, str] | None:
        combined: Dict[str, str] = {}
        if self._settings.metadata:
            combined.update(self._settings.metadata)
        return combined or None

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        try:
            result = close()
        except Exception as exc:  # pragma: no cover
            LOGGER.debug("AI client close failed to start: %s", exc)
            return
        if inspect.isawaitable(result):
            await result


__all__ = [
    "AIClient",
    "AIResponse",
    "ClientSettings",
    "ConversationBackend",
    "ToolCallRequest",
]

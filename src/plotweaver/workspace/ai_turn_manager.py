"""AI turn manager domain service.

Runs one conversational turn at a time: it sends the conversation to the
backend, dispatches the tool calls the model asks for, and makes a single
follow-up call so the model can report what it did. Every state transition is
published on the event bus.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

from ..ai.client import AIResponse, ConversationBackend
from ..ai.orchestration.tool_dispatcher import ToolDispatcher
from ..ai.prompts import (
    CONSISTENCY_CHECK_REQUEST,
    NO_ASSOCIATED_CHARACTERS,
    NO_INCONSISTENCIES,
    NO_TEXT_RESPONSE,
    action_summary,
    consistency_check_prompt,
    default_persona_prompt,
    error_reply,
    greeting,
)
from ..ai.tools.errors import NotFoundError
from ..editor import project_ops
from ..editor.document_model import Project
from .events import (
    AITurnCanceled,
    AITurnCompleted,
    AITurnFailed,
    AITurnStarted,
    AITurnToolExecuted,
    ChatMessageAdded,
    EventBus,
    NoticePosted,
)
from .models import AITurnState, AITurnStatus, ChatMessage, ChatRole
from .session import EditorSession

LOGGER = logging.getLogger(__name__)


class AITurnManager:
    """Domain manager for AI turn execution.

    Keeps two parallel records of the conversation: the visible transcript
    of :class:`ChatMessage` entries, and the backend history of OpenAI-style
    message dicts, which also carries tool calls and tool results.

    Events Emitted:
        - AITurnStarted: When a turn begins
        - AITurnToolExecuted: For each tool call dispatched
        - AITurnCompleted: When a turn finishes with an answer
        - AITurnFailed: When the backend call raises
        - AITurnCanceled: When the running turn is canceled
        - ChatMessageAdded: For each transcript entry
        - NoticePosted: For consistency check results
    """

    def __init__(
        self,
        session: EditorSession,
        backend: ConversationBackend,
        dispatcher: ToolDispatcher,
        event_bus: EventBus | None = None,
        *,
        persona_prompt: str | None = None,
    ) -> None:
        """Initialize the AI turn manager.

        Args:
            session: The editor session tools commit through.
            backend: The model provider.
            dispatcher: Routes tool calls to the registered project tools.
            event_bus: The bus to publish on. Defaults to the session's bus.
            persona_prompt: Instructions placed before the project context.
        """
        self._session = session
        self._backend = backend
        self._dispatcher = dispatcher
        self._bus = event_bus if event_bus is not None else session.bus
        self._persona = persona_prompt or default_persona_prompt()
        self._current_turn: AITurnState | None = None
        self._task: asyncio.Task[Any] | None = None
        self._loading = False
        self._transcript: list[ChatMessage] = []
        self._history: list[dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def current_turn(self) -> AITurnState | None:
        """The most recent turn, running or finished."""
        return self._current_turn

    @property
    def transcript(self) -> tuple[ChatMessage, ...]:
        return tuple(self._transcript)

    @property
    def history(self) -> tuple[dict[str, Any], ...]:
        return tuple(self._history)

    @property
    def persona_prompt(self) -> str:
        return self._persona

    def is_running(self) -> bool:
        """Check if an AI turn is awaiting the backend or executing tools."""
        return self._loading

    # ------------------------------------------------------------------
    # Turn Lifecycle
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> AITurnState:
        """Run one turn for the writer's message.

        Args:
            text: The writer's message.

        Returns:
            The finished AITurnState. A backend failure does not raise; the
            turn is marked failed and an apology is added to the transcript.

        Raises:
            RuntimeError: If a turn is already in progress.

        Emits:
            AITurnStarted, AITurnToolExecuted, AITurnCompleted, AITurnFailed.
        """
        if self._loading:
            raise RuntimeError("AI turn already in progress")

        self._loading = True
        self._task = asyncio.current_task()
        turn = AITurnState(
            turn_id=f"turn-{uuid.uuid4().hex[:8]}",
            prompt=text,
            status=AITurnStatus.RUNNING,
        )
        self._current_turn = turn
        LOGGER.debug("AITurnManager.send_message: turn_id=%s, prompt_length=%d", turn.turn_id, len(text))

        try:
            self._history.append({"role": "user", "content": text})
            self._append_transcript("user", text)
            self._bus.publish(AITurnStarted(turn_id=turn.turn_id, prompt=text))

            response = await self._converse()
            if response.has_tool_calls:
                await self._execute_tool_calls(turn, response)
                response = await self._converse()
                if response.has_tool_calls:
                    LOGGER.warning(
                        "AITurnManager: ignoring %d tool call(s) in follow-up response, turn_id=%s",
                        len(response.tool_calls),
                        turn.turn_id,
                    )

            answer = self._record_answer(response.text)
            turn.mark_completed()
            LOGGER.debug(
                "AITurnManager: turn completed, turn_id=%s, edit_count=%d",
                turn.turn_id,
                turn.edit_count,
            )
            self._bus.publish(
                AITurnCompleted(
                    turn_id=turn.turn_id,
                    success=True,
                    edit_count=turn.edit_count,
                    response_text=answer,
                )
            )

        except asyncio.CancelledError:
            turn.mark_canceled()
            LOGGER.debug("AITurnManager: turn canceled, turn_id=%s", turn.turn_id)
            self._bus.publish(AITurnCanceled(turn_id=turn.turn_id))
            raise

        except Exception as exc:
            error_msg = str(exc) or type(exc).__name__
            turn.mark_failed(error_msg)
            LOGGER.warning("AITurnManager: turn failed, turn_id=%s, error=%s", turn.turn_id, error_msg)
            self._append_transcript("model", error_reply(error_msg))
            self._bus.publish(AITurnFailed(turn_id=turn.turn_id, error=error_msg))

        finally:
            self._loading = False
            self._task = None

        return turn

    def cancel(self) -> bool:
        """Cancel the running turn.

        Tool calls already dispatched stay committed.

        Returns:
            True if a turn was running and has been asked to stop.
        """
        if not self._loading or self._task is None or self._task.done():
            LOGGER.debug("AITurnManager.cancel: no turn running")
            return False
        turn_id = self._current_turn.turn_id if self._current_turn else "unknown"
        LOGGER.debug("AITurnManager.cancel: canceling turn_id=%s", turn_id)
        self._task.cancel()
        return True

    def reset_conversation(self, project: Project | None = None) -> None:
        """Forget the conversation and greet the writer for ``project``."""
        project = project if project is not None else self._session.project
        self._history.clear()
        self._transcript.clear()
        self._current_turn = None
        self._append_transcript("model", greeting(project))

    async def run_consistency_check(self, section_id: str) -> str:
        """Ask the backend to compare a section against its characters.

        Returns:
            The review text, a notice when the section has no associated
            characters, or an apology when the backend fails.

        Raises:
            NotFoundError: If no section has ``section_id``.
        """
        project = self._session.project
        section = project_ops.find_section(project, section_id)
        if section is None:
            raise NotFoundError(item_type="section", item_id=section_id)

        characters = [
            character
            for character in (project_ops.find_character(project, cid) for cid in section.character_ids)
            if character is not None
        ]
        if not characters:
            self._bus.publish(NoticePosted(message=NO_ASSOCIATED_CHARACTERS))
            return NO_ASSOCIATED_CHARACTERS

        messages = [
            {"role": "system", "content": consistency_check_prompt(section, characters)},
            {"role": "user", "content": CONSISTENCY_CHECK_REQUEST},
        ]
        try:
            result = await self._backend.complete(messages)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Consistency check failed for section %s: %s", section_id, exc)
            result = error_reply(str(exc) or type(exc).__name__)
        else:
            result = (result or "").strip() or NO_INCONSISTENCIES

        self._bus.publish(NoticePosted(message=result))
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _converse(self) -> AIResponse:
        return await self._backend.converse(
            list(self._history),
            self._session.project,
            self._session.selected_item,
            self._persona,
            tools=self._dispatcher.registry.to_openai_tools(),
        )

    async def _execute_tool_calls(self, turn: AITurnState, response: AIResponse) -> None:
        assistant: dict[str, Any] = {
            "role": "assistant",
            "content": response.text,
            "tool_calls": [call.to_message_dict() for call in response.tool_calls],
        }
        self._history.append(assistant)

        for call in response.tool_calls:
            result = await self._dispatcher.dispatch(call.name, call.arguments_json)
            turn.tool_calls.append(call.name)
            if result.success and result.mutated:
                turn.edit_count += 1
            self._history.append(
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(result.to_payload()),
                }
            )
            self._bus.publish(
                AITurnToolExecuted(
                    turn_id=turn.turn_id,
                    tool_name=call.name,
                    tool_call_id=call.id,
                    arguments=call.arguments_json,
                    result=result.message,
                    success=result.success,
                    duration_ms=result.execution_time_ms,
                )
            )

        self._append_transcript("model", action_summary(call.name for call in response.tool_calls))

    def _record_answer(self, text: str | None) -> str:
        if not text:
            self._append_transcript("model", NO_TEXT_RESPONSE)
            return NO_TEXT_RESPONSE
        self._history.append({"role": "assistant", "content": text})
        self._append_transcript("model", text)
        return text

    def _append_transcript(self, role: ChatRole, text: str) -> None:
        self._transcript.append(ChatMessage(role=role, text=text))
        self._bus.publish(ChatMessageAdded(role=role, text=text))


__all__ = ["AITurnManager"]

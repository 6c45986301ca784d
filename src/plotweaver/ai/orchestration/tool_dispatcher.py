"""Tool Dispatcher for the AI turn loop.

Routes a tool call from the model to its registered handler. Arguments arrive
as a JSON string, are parsed and validated against the tool's JSON schema, and
every outcome, including crashes, comes back as a :class:`DispatchResult` so
one bad call never aborts the rest of a batch.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError

from ..tools.errors import (
    ErrorCode,
    InvalidArgumentsError,
    ToolError,
    UnknownToolError,
)
from ..tools.tool_registry import ToolRegistration, ToolRegistry

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Dispatch Result
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class DispatchResult:
    """Result of a tool dispatch operation.

    Attributes:
        success: Whether the tool executed successfully.
        message: Human-readable outcome reported back to the model.
        result: The tool's return value.
        error: Error if execution failed.
        tool_name: Name of the tool executed.
        execution_time_ms: Execution time in milliseconds.
        mutated: Whether the call changed the project.
    """

    success: bool
    message: str
    result: Any = None
    error: ToolError | None = None
    tool_name: str = ""
    execution_time_ms: float = 0.0
    mutated: bool = False

    def to_payload(self) -> dict[str, Any]:
        """The ``{success, message}`` shape sent back to the model."""
        return {"success": self.success, "message": self.message}


# -----------------------------------------------------------------------------
# Tool Dispatcher
# -----------------------------------------------------------------------------


class ToolDispatcher:
    """Dispatches tool calls to registered implementations.

    Example:
        dispatcher = ToolDispatcher(registry=registry)
        result = await dispatcher.dispatch("deleteCharacter", '{"characterId": "c1"}')
        payload = result.to_payload()
    """

    def __init__(self, *, registry: ToolRegistry) -> None:
        self._registry = registry
        self._validators: dict[str, Draft7Validator] = {}

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        tool_name: str,
        arguments: str | Mapping[str, Any] | None,
    ) -> DispatchResult:
        """Dispatch a tool call.

        Args:
            tool_name: Name of the tool to execute.
            arguments: JSON-encoded arguments as sent by the model, or an
                already decoded mapping.

        Returns:
            DispatchResult with execution outcome. This method does not raise
            for tool failures.
        """
        start_time = datetime.now(timezone.utc)

        registration = self._registry.get_registration(tool_name)
        if registration is None:
            return self._fail(tool_name, UnknownToolError(tool_name=tool_name), start_time)

        try:
            params = self._parse_arguments(tool_name, arguments)
            self._validate_arguments(registration, params)
        except ToolError as exc:
            return self._fail(tool_name, exc, start_time)

        try:
            result = await self._execute_callable(registration.impl, params)
        except ToolError as exc:
            return self._fail(tool_name, exc, start_time)
        except Exception as exc:
            LOGGER.exception("Tool %s failed unexpectedly", tool_name)
            error = ToolError(
                error_code=ErrorCode.INTERNAL_ERROR,
                message=f"Error executing {tool_name}: {exc}",
            )
            return self._fail(tool_name, error, start_time)

        return self._create_success_result(registration, result, start_time)

    # ------------------------------------------------------------------
    # Argument handling
    # ------------------------------------------------------------------

    def _parse_arguments(
        self, tool_name: str, arguments: str | Mapping[str, Any] | None
    ) -> dict[str, Any]:
        if arguments is None or arguments == "":
            return {}
        if isinstance(arguments, Mapping):
            return dict(arguments)
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError as exc:
            raise InvalidArgumentsError(
                message=f"Arguments for {tool_name} are not valid JSON: {exc.msg}",
                details={"line": exc.lineno, "column": exc.colno},
                tool_name=tool_name,
            ) from exc
        if not isinstance(parsed, dict):
            raise InvalidArgumentsError(
                message=f"Arguments for {tool_name} must be a JSON object.",
                tool_name=tool_name,
            )
        return parsed

    def _validate_arguments(self, registration: ToolRegistration, params: Mapping[str, Any]) -> None:
        validator = self._validator_for(registration)
        issues = sorted(validator.iter_errors(params), key=lambda issue: list(issue.absolute_path))
        if not issues:
            return
        first = issues[0]
        raise InvalidArgumentsError(
            message=f"Invalid arguments for {registration.name}: {_format_validation_error(first)}",
            details={"errors": [_format_validation_error(issue) for issue in issues]},
            tool_name=registration.name,
        )

    def _validator_for(self, registration: ToolRegistration) -> Draft7Validator:
        validator = self._validators.get(registration.name)
        if validator is None:
            validator = Draft7Validator(registration.schema.to_json_schema())
            self._validators[registration.name] = validator
        return validator

    async def _execute_callable(
        self,
        tool: Callable[..., Any],
        arguments: Mapping[str, Any],
    ) -> Any:
        result = tool(**arguments)

        if hasattr(result, "__await__"):
            result = await result

        return result

    # ------------------------------------------------------------------
    # Result Building
    # ------------------------------------------------------------------

    def _create_success_result(
        self,
        registration: ToolRegistration,
        result: Any,
        start_time: datetime,
    ) -> DispatchResult:
        elapsed_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        message = "Done."
        changed = True
        if isinstance(result, Mapping):
            message = str(result.get("message") or message)
            changed = bool(result.get("changed", True))
        elif isinstance(result, str) and result:
            message = result
        return DispatchResult(
            success=True,
            message=message,
            result=result,
            tool_name=registration.name,
            execution_time_ms=elapsed_ms,
            mutated=registration.schema.writes_document and changed,
        )

    def _fail(self, tool_name: str, error: ToolError, start_time: datetime) -> DispatchResult:
        elapsed_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        LOGGER.debug("Tool %s failed: %s", tool_name, error)
        return DispatchResult(
            success=False,
            message=error.message,
            error=error,
            tool_name=tool_name,
            execution_time_ms=elapsed_ms,
        )


def _format_validation_error(issue: ValidationError) -> str:
    path = ".".join(str(part) for part in issue.absolute_path)
    return f"{path}: {issue.message}" if path else issue.message


__all__ = [
    "DispatchResult",
    "ToolDispatcher",
]

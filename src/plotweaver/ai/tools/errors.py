"""Standardized error types for project editing tools.

Every failure a tool handler can report derives from :class:`ToolError`, which
serializes to a consistent dictionary and prints as ``[code] message``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in tool responses."""

    # Target errors
    NOT_FOUND = "not_found"
    INVALID_MOVE = "invalid_move"

    # Call errors
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"

    # General errors
    INTERNAL_ERROR = "internal_error"
    INVALID_PARAMETER = "invalid_parameter"
    MISSING_PARAMETER = "missing_parameter"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ToolError(Exception):
    """Base exception class for all tool errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description, reported back to the model.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for JSON tool responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Target Errors
# -----------------------------------------------------------------------------

@dataclass
class NotFoundError(ToolError):
    """Raised when a tool call names an item id that is not in the project."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use the IDs listed in the project context")

    item_type: str = field(default="item")
    item_id: str | None = field(default=None)

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"{self.item_type.capitalize()} with ID '{self.item_id}' not found."
        super().__post_init__()

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["item_type"] = self.item_type
        if self.item_id is not None:
            result["item_id"] = self.item_id
        return result


@dataclass
class InvalidMoveError(ToolError):
    """Raised when a move would place a section inside its own subtree."""

    error_code: str = field(default=ErrorCode.INVALID_MOVE)
    message: str = field(default="Cannot move a section into itself or one of its own subsections.")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Choose a target outside the section being moved")

    section_id: str | None = field(default=None)
    target_id: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.section_id is not None:
            result["section_id"] = self.section_id
        if self.target_id is not None:
            result["target_id"] = self.target_id
        return result


# -----------------------------------------------------------------------------
# Call Errors
# -----------------------------------------------------------------------------

@dataclass
class UnknownToolError(ToolError):
    """Raised when the model requests a tool that is not registered."""

    error_code: str = field(default=ErrorCode.UNKNOWN_TOOL)
    message: str = field(default="")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Only call the tools listed in the request")

    tool_name: str = field(default="")

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Unknown tool '{self.tool_name}'."
        super().__post_init__()


@dataclass
class InvalidArgumentsError(ToolError):
    """Raised when tool arguments are not valid JSON or violate the tool schema."""

    error_code: str = field(default=ErrorCode.INVALID_ARGUMENTS)
    message: str = field(default="Tool arguments are invalid")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Send a JSON object matching the tool's parameters")

    tool_name: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.tool_name is not None:
            result["tool_name"] = self.tool_name
        return result


# -----------------------------------------------------------------------------
# General Errors
# -----------------------------------------------------------------------------

@dataclass
class MissingParameterError(ToolError):
    """Error raised when a required parameter is missing."""

    error_code: str = field(default=ErrorCode.MISSING_PARAMETER)
    message: str = field(default="Required parameter is missing")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Provide the required parameter")

    parameter: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.parameter is not None:
            result["parameter"] = self.parameter
        return result


__all__ = [
    # Error codes
    "ErrorCode",
    # Base error
    "ToolError",
    # Target errors
    "NotFoundError",
    "InvalidMoveError",
    # Call errors
    "UnknownToolError",
    "InvalidArgumentsError",
    # General errors
    "MissingParameterError",
]

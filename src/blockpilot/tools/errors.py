"""Standardized error types for tool-call handling.

Every error raised while routing, planning or applying a tool call derives
from :class:`ToolError`, which serializes consistently for notices and logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from ..safety.content_preservation import ContentPreservationResult


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in dispatch results."""

    # Tool-call payload errors
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"

    # Target resolution errors
    BLOCK_NOT_FOUND = "block_not_found"
    TARGET_TEXT_NOT_FOUND = "target_text_not_found"
    INVALID_TARGET = "invalid_target"

    # Guard decisions
    CONTENT_BLOCKED = "content_blocked"

    # Confirmation gate
    CONFIRMATION_NOT_FOUND = "confirmation_not_found"

    # Persistence
    PERSISTENCE_FAILED = "persistence_failed"

    # General errors
    INTERNAL_ERROR = "internal_error"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ToolError(Exception):
    """Base exception class for all tool errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for dispatch results."""
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
# Tool-call Payload Errors
# -----------------------------------------------------------------------------

@dataclass
class UnknownToolError(ToolError):
    """Raised when a tool call names a tool the engine does not handle."""

    error_code: str = field(default=ErrorCode.UNKNOWN_TOOL)
    message: str = field(default="Unknown tool")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(
        default="Use one of addContent, modifyContent, deleteContent, modifyTable, replaceAllContent, requestEditorContent"
    )

    tool_name: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.tool_name is not None:
            result["tool_name"] = self.tool_name
        return result


@dataclass
class InvalidToolArgumentsError(ToolError):
    """Raised when tool-call arguments fail schema validation."""

    error_code: str = field(default=ErrorCode.INVALID_ARGUMENTS)
    message: str = field(default="Tool arguments are invalid")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the tool's argument schema and retry")

    tool_name: str | None = field(default=None)
    parameter: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.tool_name is not None:
            result["tool_name"] = self.tool_name
        if self.parameter is not None:
            result["parameter"] = self.parameter
        return result


# -----------------------------------------------------------------------------
# Target Resolution Errors
# -----------------------------------------------------------------------------

@dataclass
class BlockNotFoundError(ToolError):
    """Raised when a referenced block id is not in the document."""

    error_code: str = field(default=ErrorCode.BLOCK_NOT_FOUND)
    message: str = field(default="Block not found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Request the editor content to get current block ids")

    block_id: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.block_id is not None:
            result["block_id"] = self.block_id
        return result


@dataclass
class TargetTextNotFoundError(ToolError):
    """Raised when a literal substring target does not occur in its block."""

    error_code: str = field(default=ErrorCode.TARGET_TEXT_NOT_FOUND)
    message: str = field(default="Target text not found in block")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Quote the text exactly as it appears in the block")

    block_id: str | None = field(default=None)
    target_text: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.block_id is not None:
            result["block_id"] = self.block_id
        if self.target_text is not None:
            result["target_text"] = self.target_text
        return result


@dataclass
class InvalidTargetError(ToolError):
    """Raised when a block exists but cannot be the target of the operation."""

    error_code: str = field(default=ErrorCode.INVALID_TARGET)
    message: str = field(default="Block cannot be targeted by this operation")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Target a block of the expected type")

    block_id: str | None = field(default=None)
    block_type: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.block_id is not None:
            result["block_id"] = self.block_id
        if self.block_type is not None:
            result["block_type"] = self.block_type
        return result


# -----------------------------------------------------------------------------
# Guard / Gate Errors
# -----------------------------------------------------------------------------

@dataclass
class ContentBlockedError(ToolError):
    """Raised when the preservation guard refuses an operation."""

    error_code: str = field(default=ErrorCode.CONTENT_BLOCKED)
    message: str = field(default="Operation blocked to preserve existing content")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    result: "ContentPreservationResult | None" = field(default=None, repr=False)

    severity: ClassVar[str] = "warning"

    @classmethod
    def from_result(cls, result: "ContentPreservationResult") -> "ContentBlockedError":
        return cls(
            message=result.error_message or "Operation blocked to preserve existing content",
            details=result.impact.to_dict() if result.impact else {},
            suggestion=result.suggested_action or "",
            result=result,
        )


@dataclass
class ConfirmationNotFoundError(ToolError):
    """Raised when resolving a confirmation that is not pending."""

    error_code: str = field(default=ErrorCode.CONFIRMATION_NOT_FOUND)
    message: str = field(default="No pending confirmation for this tool call")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    call_id: str | None = field(default=None)


@dataclass
class PersistenceError(ToolError):
    """Raised by document stores when a write fails."""

    error_code: str = field(default=ErrorCode.PERSISTENCE_FAILED)
    message: str = field(default="Failed to save the document")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Edit the document again or save manually to retry")

    document_id: str | None = field(default=None)
    status_code: int | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.document_id is not None:
            result["document_id"] = self.document_id
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


# -----------------------------------------------------------------------------
# Utility Functions
# -----------------------------------------------------------------------------

def error_from_dict(data: Mapping[str, Any]) -> ToolError:
    """Reconstruct a ToolError from its dictionary representation."""
    return ToolError(
        error_code=data.get("error", ErrorCode.INTERNAL_ERROR),
        message=data.get("message", "Unknown error"),
        details=dict(data.get("details", {})),
        suggestion=data.get("suggestion", ""),
    )


__all__ = [
    "ErrorCode",
    "ToolError",
    "UnknownToolError",
    "InvalidToolArgumentsError",
    "BlockNotFoundError",
    "TargetTextNotFoundError",
    "InvalidTargetError",
    "ContentBlockedError",
    "ConfirmationNotFoundError",
    "PersistenceError",
    "error_from_dict",
]

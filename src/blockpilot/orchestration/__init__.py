"""Transcript parsing and tool-call dispatch."""

from .tool_dispatcher import DispatchResult, Notice, ToolCallDispatcher, create_tool_dispatcher
from .transcript import ToolCallEvent, extract_tool_call_events

__all__ = [
    "DispatchResult",
    "Notice",
    "ToolCallDispatcher",
    "create_tool_dispatcher",
    "ToolCallEvent",
    "extract_tool_call_events",
]

"""Extraction of tool-call events from streamed assistant messages.

Assistant messages reach the dispatcher as plain mappings. Depending on the
backend, tool calls sit under ``toolInvocations``, inside ``parts`` entries of
type ``tool-invocation``, or under OpenAI-style ``tool_calls``. All shapes are
normalized into :class:`ToolCallEvent` instances here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping, Sequence

__all__ = ["ToolCallState", "ToolCallEvent", "extract_tool_call_events", "iter_transcript_events"]

LOGGER = logging.getLogger(__name__)

ToolCallState = Literal["partial-call", "call", "result"]
_KNOWN_STATES = ("partial-call", "call", "result")


@dataclass(slots=True, frozen=True)
class ToolCallEvent:
    """One tool call as emitted by the assistant."""

    tool_call_id: str
    tool_name: str
    args: Mapping[str, Any] | str | None = field(default=None, compare=False)
    state: ToolCallState = "call"

    @property
    def is_finalized(self) -> bool:
        """Whether the call already carries a result from an earlier session."""

        return self.state == "result"

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ToolCallEvent | None":
        call_id = payload.get("toolCallId") or payload.get("tool_call_id") or payload.get("id")
        name = payload.get("toolName") or payload.get("tool_name") or payload.get("name")
        args: Any = payload.get("args")
        function = payload.get("function")
        if isinstance(function, Mapping):
            name = name or function.get("name")
            args = function.get("arguments") if args is None else args
        if args is None:
            args = payload.get("arguments")
        if not call_id or not name:
            LOGGER.debug("Ignoring tool call entry without id or name: %s", payload)
            return None
        state = payload.get("state") or "call"
        if state not in _KNOWN_STATES:
            state = "call"
        return cls(tool_call_id=str(call_id), tool_name=str(name), args=args, state=state)


def extract_tool_call_events(message: Mapping[str, Any]) -> list[ToolCallEvent]:
    """Return the tool calls carried by one assistant ``message`` in order."""

    if not isinstance(message, Mapping):
        return []
    entries: list[Mapping[str, Any]] = []
    for key in ("toolInvocations", "tool_invocations", "tool_calls"):
        value = message.get(key)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            entries.extend(item for item in value if isinstance(item, Mapping))
    parts = message.get("parts")
    if isinstance(parts, Sequence) and not isinstance(parts, (str, bytes)):
        for part in parts:
            if isinstance(part, Mapping) and part.get("type") == "tool-invocation":
                invocation = part.get("toolInvocation")
                if isinstance(invocation, Mapping):
                    entries.append(invocation)

    events: list[ToolCallEvent] = []
    seen: set[str] = set()
    for entry in entries:
        event = ToolCallEvent.from_mapping(entry)
        # The same invocation may appear both in parts and toolInvocations.
        if event is None or event.tool_call_id in seen:
            continue
        seen.add(event.tool_call_id)
        events.append(event)
    return events


def iter_transcript_events(messages: Iterable[Mapping[str, Any]]) -> list[ToolCallEvent]:
    """Collect tool-call events from every assistant message of a transcript."""

    events: list[ToolCallEvent] = []
    for message in messages:
        if isinstance(message, Mapping) and message.get("role", "assistant") == "assistant":
            events.extend(extract_tool_call_events(message))
    return events

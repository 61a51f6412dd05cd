"""Tests for tool-call extraction from assistant messages."""

from __future__ import annotations

from blockpilot.orchestration.transcript import (
    ToolCallEvent,
    extract_tool_call_events,
    iter_transcript_events,
)
from helpers import assistant_message, tool_call


def test_extracts_tool_invocations_in_order() -> None:
    message = assistant_message(
        tool_call("c1", "addContent", {"markdownContent": "a"}),
        tool_call("c2", "deleteContent", {"targetBlockId": "p1"}, state="result"),
    )

    events = extract_tool_call_events(message)

    assert [event.tool_call_id for event in events] == ["c1", "c2"]
    assert events[0].args == {"markdownContent": "a"}
    assert not events[0].is_finalized
    assert events[1].is_finalized


def test_extracts_parts_and_deduplicates() -> None:
    call = tool_call("c1", "addContent", {"markdownContent": "a"})
    message = {
        "role": "assistant",
        "toolInvocations": [call],
        "parts": [
            {"type": "text", "text": "Adding"},
            {"type": "tool-invocation", "toolInvocation": call},
        ],
    }

    assert [event.tool_call_id for event in extract_tool_call_events(message)] == ["c1"]


def test_openai_style_tool_calls() -> None:
    message = {
        "role": "assistant",
        "tool_calls": [
            {"id": "call_1", "type": "function", "function": {"name": "addContent", "arguments": '{"markdownContent": "x"}'}}
        ],
    }

    (event,) = extract_tool_call_events(message)

    assert event == ToolCallEvent("call_1", "addContent")
    assert event.args == '{"markdownContent": "x"}'


def test_entries_without_id_or_name_are_dropped() -> None:
    message = {"toolInvocations": [{"toolName": "addContent"}, {"toolCallId": "c1"}, "junk"]}

    assert extract_tool_call_events(message) == []


def test_unknown_state_treated_as_call() -> None:
    (event,) = extract_tool_call_events(assistant_message(tool_call("c1", "addContent", state="weird")))

    assert event.state == "call"


def test_non_mapping_message() -> None:
    assert extract_tool_call_events("not a message") == []  # type: ignore[arg-type]


def test_iter_transcript_skips_user_messages() -> None:
    messages = [
        {"role": "user", "toolInvocations": [tool_call("u1", "addContent")]},
        assistant_message(tool_call("a1", "addContent")),
        assistant_message(tool_call("a2", "modifyTable")),
    ]

    assert [event.tool_call_id for event in iter_transcript_events(messages)] == ["a1", "a2"]

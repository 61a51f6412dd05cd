"""Shared test helpers for building block documents.

Import from here instead of duplicating builders in individual test files:

    from helpers import list_item, paragraph
"""

from __future__ import annotations

from typing import Any

from blockpilot.editor.document_model import Block, InlineSpan


def paragraph(text: str, block_id: str) -> Block:
    return Block(type="paragraph", content=[InlineSpan(text)] if text else [], id=block_id)


def list_item(
    text: str,
    block_id: str,
    *,
    kind: str = "bulletListItem",
    children: list[Block] | None = None,
    **props: Any,
) -> Block:
    return Block(type=kind, content=[InlineSpan(text)], children=list(children or []), props=dict(props), id=block_id)


def assistant_message(*calls: dict[str, Any]) -> dict[str, Any]:
    """Wrap tool-call entries in an assistant message mapping."""
    return {"role": "assistant", "content": "", "toolInvocations": list(calls)}


def tool_call(call_id: str, name: str, args: Any = None, *, state: str = "call") -> dict[str, Any]:
    return {"toolCallId": call_id, "toolName": name, "args": args if args is not None else {}, "state": state}

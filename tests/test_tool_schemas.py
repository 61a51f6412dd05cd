"""Tests for tool argument validation."""

from __future__ import annotations

import pytest

from blockpilot.tools.errors import ErrorCode, InvalidToolArgumentsError, UnknownToolError
from blockpilot.tools.schemas import (
    DOCUMENT_TOOLS,
    AddContentArgs,
    DeleteContentArgs,
    ModifyContentArgs,
    ModifyTableArgs,
    ReplaceAllContentArgs,
    RequestEditorContentArgs,
    ToolName,
    parse_tool_arguments,
)


def test_add_content_args() -> None:
    args = parse_tool_arguments("addContent", {"markdownContent": "Hello", "targetBlockId": "p1"})

    assert args == AddContentArgs(markdown_content="Hello", target_block_id="p1")
    assert args.tool_name is ToolName.ADD_CONTENT


def test_add_content_accepts_null_target() -> None:
    args = parse_tool_arguments("addContent", {"markdownContent": "Hello", "targetBlockId": None})

    assert args.target_block_id is None


def test_modify_content_empty_target_text_is_none() -> None:
    args = parse_tool_arguments(
        "modifyContent", {"targetBlockId": "p1", "newMarkdownContent": "x", "targetText": ""}
    )

    assert args == ModifyContentArgs(target_block_id="p1", new_markdown_content="x", target_text=None)


def test_delete_content_normalizes_targets() -> None:
    single = parse_tool_arguments("deleteContent", {"targetBlockId": "p1"})
    many = parse_tool_arguments("deleteContent", {"targetBlockId": ["a", "b", "a"]})

    assert single == DeleteContentArgs(target_block_ids=("p1",))
    assert many.target_block_ids == ("a", "b")


def test_json_string_arguments() -> None:
    args = parse_tool_arguments("modifyTable", '{"tableBlockId": "t1", "newTableMarkdown": "| a |"}')

    assert args == ModifyTableArgs(table_block_id="t1", new_table_markdown="| a |")


def test_replace_all_and_request_content() -> None:
    replace = parse_tool_arguments(
        "replaceAllContent", {"newMarkdownContent": "# New", "requireConfirmation": True}
    )
    request = parse_tool_arguments("requestEditorContent", None)

    assert replace == ReplaceAllContentArgs(new_markdown_content="# New", require_confirmation=True)
    assert isinstance(request, RequestEditorContentArgs)
    assert ToolName.REQUEST_EDITOR_CONTENT not in DOCUMENT_TOOLS


def test_unknown_tool() -> None:
    with pytest.raises(UnknownToolError) as excinfo:
        parse_tool_arguments("launchRockets", {})

    assert excinfo.value.error_code == ErrorCode.UNKNOWN_TOOL
    assert excinfo.value.to_dict()["tool_name"] == "launchRockets"


@pytest.mark.parametrize(
    ("tool_name", "args"),
    [
        ("addContent", {}),
        ("addContent", {"markdownContent": ""}),
        ("modifyContent", {"targetBlockId": "p1"}),
        ("deleteContent", {"targetBlockId": []}),
        ("deleteContent", {"targetBlockId": 7}),
        ("modifyTable", {"tableBlockId": "", "newTableMarkdown": "| a |"}),
        ("replaceAllContent", {"newMarkdownContent": "x", "requireConfirmation": "yes"}),
    ],
)
def test_schema_violations(tool_name: str, args: dict) -> None:
    with pytest.raises(InvalidToolArgumentsError) as excinfo:
        parse_tool_arguments(tool_name, args)

    assert excinfo.value.error_code == ErrorCode.INVALID_ARGUMENTS
    assert tool_name in excinfo.value.message


def test_malformed_json_arguments() -> None:
    with pytest.raises(InvalidToolArgumentsError, match="not valid JSON"):
        parse_tool_arguments("addContent", "{not json")


def test_non_object_arguments() -> None:
    with pytest.raises(InvalidToolArgumentsError, match="must be an object"):
        parse_tool_arguments("addContent", "[1, 2]")

"""JSON schemas and typed argument variants for the document tools.

Assistant tool calls arrive with loosely-typed ``args``. They are validated
against the schemas below and converted into one frozen dataclass per tool
before any other component sees them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Union

from jsonschema import Draft7Validator, ValidationError

from .errors import InvalidToolArgumentsError, UnknownToolError

__all__ = [
    "ToolName",
    "TOOL_SCHEMAS",
    "AddContentArgs",
    "ModifyContentArgs",
    "DeleteContentArgs",
    "ModifyTableArgs",
    "ReplaceAllContentArgs",
    "RequestEditorContentArgs",
    "ToolArguments",
    "DOCUMENT_TOOLS",
    "parse_tool_arguments",
]


class ToolName(str, Enum):
    """Tool names the assistant may emit."""

    ADD_CONTENT = "addContent"
    MODIFY_CONTENT = "modifyContent"
    DELETE_CONTENT = "deleteContent"
    MODIFY_TABLE = "modifyTable"
    REPLACE_ALL_CONTENT = "replaceAllContent"
    REQUEST_EDITOR_CONTENT = "requestEditorContent"


_BLOCK_ID_SCHEMA: Dict[str, Any] = {"type": "string", "minLength": 1}

TOOL_SCHEMAS: Dict[ToolName, Dict[str, Any]] = {
    ToolName.ADD_CONTENT: {
        "type": "object",
        "required": ["markdownContent"],
        "properties": {
            "markdownContent": {"type": "string", "minLength": 1},
            "targetBlockId": {"anyOf": [_BLOCK_ID_SCHEMA, {"type": "null"}]},
        },
        "additionalProperties": True,
    },
    ToolName.MODIFY_CONTENT: {
        "type": "object",
        "required": ["targetBlockId", "newMarkdownContent"],
        "properties": {
            "targetBlockId": _BLOCK_ID_SCHEMA,
            "targetText": {"anyOf": [{"type": "string"}, {"type": "null"}]},
            "newMarkdownContent": {"type": "string"},
        },
        "additionalProperties": True,
    },
    ToolName.DELETE_CONTENT: {
        "type": "object",
        "required": ["targetBlockId"],
        "properties": {
            "targetBlockId": {
                "anyOf": [
                    _BLOCK_ID_SCHEMA,
                    {"type": "array", "items": _BLOCK_ID_SCHEMA, "minItems": 1},
                ]
            },
            "targetText": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        },
        "additionalProperties": True,
    },
    ToolName.MODIFY_TABLE: {
        "type": "object",
        "required": ["tableBlockId", "newTableMarkdown"],
        "properties": {
            "tableBlockId": _BLOCK_ID_SCHEMA,
            "newTableMarkdown": {"type": "string", "minLength": 1},
        },
        "additionalProperties": True,
    },
    ToolName.REPLACE_ALL_CONTENT: {
        "type": "object",
        "required": ["newMarkdownContent"],
        "properties": {
            "newMarkdownContent": {"type": "string"},
            "requireConfirmation": {"type": "boolean"},
        },
        "additionalProperties": True,
    },
    ToolName.REQUEST_EDITOR_CONTENT: {
        "type": "object",
        "additionalProperties": True,
    },
}

_VALIDATORS: Dict[ToolName, Draft7Validator] = {
    name: Draft7Validator(schema) for name, schema in TOOL_SCHEMAS.items()
}


# ----------------------------------------------------------------------
# Typed variants
# ----------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class AddContentArgs:
    tool_name: ClassVar[ToolName] = ToolName.ADD_CONTENT

    markdown_content: str
    target_block_id: str | None = None


@dataclass(slots=True, frozen=True)
class ModifyContentArgs:
    tool_name: ClassVar[ToolName] = ToolName.MODIFY_CONTENT

    target_block_id: str
    new_markdown_content: str
    target_text: str | None = None


@dataclass(slots=True, frozen=True)
class DeleteContentArgs:
    tool_name: ClassVar[ToolName] = ToolName.DELETE_CONTENT

    target_block_ids: tuple[str, ...]
    target_text: str | None = None


@dataclass(slots=True, frozen=True)
class ModifyTableArgs:
    tool_name: ClassVar[ToolName] = ToolName.MODIFY_TABLE

    table_block_id: str
    new_table_markdown: str


@dataclass(slots=True, frozen=True)
class ReplaceAllContentArgs:
    tool_name: ClassVar[ToolName] = ToolName.REPLACE_ALL_CONTENT

    new_markdown_content: str
    require_confirmation: bool = False


@dataclass(slots=True, frozen=True)
class RequestEditorContentArgs:
    tool_name: ClassVar[ToolName] = ToolName.REQUEST_EDITOR_CONTENT


ToolArguments = Union[
    AddContentArgs,
    ModifyContentArgs,
    DeleteContentArgs,
    ModifyTableArgs,
    ReplaceAllContentArgs,
    RequestEditorContentArgs,
]

DOCUMENT_TOOLS: frozenset[ToolName] = frozenset(
    {
        ToolName.ADD_CONTENT,
        ToolName.MODIFY_CONTENT,
        ToolName.DELETE_CONTENT,
        ToolName.MODIFY_TABLE,
        ToolName.REPLACE_ALL_CONTENT,
    }
)


def parse_tool_arguments(tool_name: str, args: Mapping[str, Any] | str | None) -> ToolArguments:
    """Validate ``args`` for ``tool_name`` and return its typed variant.

    Raises:
        UnknownToolError: ``tool_name`` is not a document tool.
        InvalidToolArgumentsError: ``args`` do not match the tool's schema.
    """

    try:
        name = ToolName(tool_name)
    except ValueError:
        raise UnknownToolError(message=f"Tool '{tool_name}' is not supported", tool_name=str(tool_name)) from None

    payload = _coerce_args(name, args)
    try:
        _VALIDATORS[name].validate(payload)
    except ValidationError as error:
        raise InvalidToolArgumentsError(
            message=f"Invalid arguments for {name.value}: {_format_validation_error(error)}",
            tool_name=name.value,
            parameter=".".join(str(part) for part in error.path) or None,
        ) from None

    if name is ToolName.ADD_CONTENT:
        return AddContentArgs(
            markdown_content=payload["markdownContent"],
            target_block_id=payload.get("targetBlockId") or None,
        )
    if name is ToolName.MODIFY_CONTENT:
        return ModifyContentArgs(
            target_block_id=payload["targetBlockId"],
            new_markdown_content=payload["newMarkdownContent"],
            target_text=payload.get("targetText") or None,
        )
    if name is ToolName.DELETE_CONTENT:
        raw_target = payload["targetBlockId"]
        targets = (raw_target,) if isinstance(raw_target, str) else tuple(dict.fromkeys(raw_target))
        return DeleteContentArgs(target_block_ids=targets, target_text=payload.get("targetText") or None)
    if name is ToolName.MODIFY_TABLE:
        return ModifyTableArgs(
            table_block_id=payload["tableBlockId"],
            new_table_markdown=payload["newTableMarkdown"],
        )
    if name is ToolName.REPLACE_ALL_CONTENT:
        return ReplaceAllContentArgs(
            new_markdown_content=payload["newMarkdownContent"],
            require_confirmation=bool(payload.get("requireConfirmation", False)),
        )
    return RequestEditorContentArgs()


def _coerce_args(name: ToolName, args: Mapping[str, Any] | str | None) -> Dict[str, Any]:
    if args is None:
        return {}
    if isinstance(args, Mapping):
        return dict(args)
    if isinstance(args, str):
        text = args.strip()
        if not text:
            return {}
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidToolArgumentsError(
                message=f"Arguments for {name.value} are not valid JSON: {exc.msg}",
                tool_name=name.value,
            ) from None
        if isinstance(parsed, Mapping):
            return dict(parsed)
    raise InvalidToolArgumentsError(
        message=f"Arguments for {name.value} must be an object",
        tool_name=name.value,
    )


def _format_validation_error(error: ValidationError) -> str:
    path = ".".join(str(part) for part in error.path)
    if path:
        return f"{path}: {error.message}"
    return error.message

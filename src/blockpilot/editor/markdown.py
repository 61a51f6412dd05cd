"""Markdown conversion between assistant payloads and block trees."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Optional, Sequence

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .document_model import Block, InlineSpan, TableContent
from .inline_content import get_inline_text

__all__ = ["MarkdownBlockParser", "blocks_to_markdown", "inline_to_markdown"]

LOGGER = logging.getLogger(__name__)

_TASK_PATTERN = re.compile(r"^\[(?P<mark>[ xX])\]\s+")
_LIST_TYPES = {"bullet_list_open": "bulletListItem", "ordered_list_open": "numberedListItem"}
_STYLE_TOKENS = {
    "strong_open": ("bold", True),
    "strong_close": ("bold", False),
    "em_open": ("italic", True),
    "em_close": ("italic", False),
    "s_open": ("strike", True),
    "s_close": ("strike", False),
}

_MARKDOWN_PARSER: Optional[MarkdownIt] = None


def _build_parser() -> MarkdownIt:
    global _MARKDOWN_PARSER
    if _MARKDOWN_PARSER is None:
        parser = MarkdownIt("commonmark", {"html": True})
        parser.enable("table")
        parser.enable("strikethrough")
        _MARKDOWN_PARSER = parser
    return _MARKDOWN_PARSER


class MarkdownBlockParser:
    """Turn markdown text into fresh :class:`Block` trees."""

    def parse(self, text: str) -> list[Block]:
        source = text or ""
        if not source.strip():
            return []
        tokens = _build_parser().parse(source)
        blocks, _ = _parse_sequence(tokens, 0, None)
        LOGGER.debug("Parsed %d markdown chars into %d blocks", len(source), len(blocks))
        return blocks

    async def parse_async(self, text: str) -> list[Block]:
        await asyncio.sleep(0)
        return self.parse(text)


# ----------------------------------------------------------------------
# Token walking
# ----------------------------------------------------------------------


def _parse_sequence(tokens: Sequence[Token], pos: int, closing: str | None) -> tuple[list[Block], int]:
    blocks: list[Block] = []
    while pos < len(tokens):
        token = tokens[pos]
        kind = token.type
        if closing is not None and kind == closing:
            return blocks, pos + 1
        if kind == "heading_open":
            level = int(token.tag[1:]) if token.tag[1:].isdigit() else 1
            blocks.append(Block(type="heading", content=_inline_spans(tokens[pos + 1]), props={"level": level}))
            pos += 3
        elif kind == "paragraph_open":
            blocks.append(_paragraph_block(tokens[pos + 1]))
            pos += 3
        elif kind in _LIST_TYPES:
            items, pos = _parse_list(tokens, pos + 1, _LIST_TYPES[kind], kind.replace("_open", "_close"))
            blocks.extend(items)
        elif kind == "blockquote_open":
            inner, pos = _parse_sequence(tokens, pos + 1, "blockquote_close")
            blocks.append(_quote_block(inner))
        elif kind in ("fence", "code_block"):
            props = {"language": token.info.strip()} if token.info.strip() else {}
            code = token.content.rstrip("\n")
            blocks.append(Block(type="codeBlock", content=[InlineSpan(code)] if code else [], props=props))
            pos += 1
        elif kind == "table_open":
            table, pos = _parse_table(tokens, pos + 1)
            blocks.append(table)
        elif kind == "html_block":
            raw = token.content.strip()
            if raw:
                blocks.append(Block.paragraph(raw))
            pos += 1
        else:
            pos += 1
    return blocks, pos


def _parse_list(tokens: Sequence[Token], pos: int, item_type: str, closing: str) -> tuple[list[Block], int]:
    items: list[Block] = []
    while pos < len(tokens) and tokens[pos].type != closing:
        if tokens[pos].type != "list_item_open":
            pos += 1
            continue
        inner, pos = _parse_sequence(tokens, pos + 1, "list_item_close")
        items.append(_list_item(inner, item_type))
    return items, pos + 1


def _list_item(inner: list[Block], item_type: str) -> Block:
    if inner and inner[0].type == "paragraph":
        head, children = inner[0], inner[1:]
        content = head.content if isinstance(head.content, list) else []
    else:
        content, children = [], inner
    props: dict[str, Any] = {}
    if item_type == "bulletListItem" and content:
        match = _TASK_PATTERN.match(content[0].text)
        if match:
            item_type = "checkListItem"
            props["checked"] = match.group("mark") != " "
            first = content[0]
            content = [InlineSpan(first.text[match.end():], dict(first.styles), first.href), *content[1:]]
            content = [span for span in content if span.text]
    return Block(type=item_type, content=list(content), children=list(children), props=props)


def _parse_table(tokens: Sequence[Token], pos: int) -> tuple[Block, int]:
    rows: list[list[str]] = []
    while pos < len(tokens) and tokens[pos].type != "table_close":
        token = tokens[pos]
        if token.type == "tr_open":
            rows.append([])
        elif token.type == "inline" and rows:
            rows[-1].append(token.content.strip())
        pos += 1
    return Block(type="table", content=TableContent(rows=rows)), pos + 1


def _quote_block(inner: list[Block]) -> Block:
    spans: list[InlineSpan] = []
    for block in inner:
        if spans:
            spans.append(InlineSpan("\n"))
        if isinstance(block.content, list):
            spans.extend(block.content)
        else:
            spans.append(InlineSpan(get_inline_text(block.content)))
    return Block(type="quote", content=_merge(spans))


def _paragraph_block(inline: Token) -> Block:
    children = [child for child in inline.children or [] if not (child.type == "text" and not child.content.strip())]
    if len(children) == 1 and children[0].type == "image":
        image = children[0]
        caption = image.content or ""
        return Block(
            type="image",
            content=None,
            props={"url": str(image.attrGet("src") or ""), "caption": caption, "name": caption},
        )
    return Block(type="paragraph", content=_inline_spans(inline))


def _inline_spans(inline: Token) -> list[InlineSpan]:
    spans: list[InlineSpan] = []
    styles: dict[str, Any] = {}
    href: str | None = None
    for child in inline.children or []:
        kind = child.type
        if kind in _STYLE_TOKENS:
            name, enabled = _STYLE_TOKENS[kind]
            if enabled:
                styles[name] = True
            else:
                styles.pop(name, None)
        elif kind == "link_open":
            href = str(child.attrGet("href") or "")
        elif kind == "link_close":
            href = None
        elif kind == "code_inline":
            spans.append(InlineSpan(child.content, {**styles, "code": True}, href))
        elif kind in ("softbreak", "hardbreak"):
            spans.append(InlineSpan("\n", dict(styles), href))
        elif kind in ("text", "html_inline", "image"):
            spans.append(InlineSpan(child.content, dict(styles), href))
    return _merge(spans)


def _merge(spans: list[InlineSpan]) -> list[InlineSpan]:
    merged: list[InlineSpan] = []
    for span in spans:
        if not span.text:
            continue
        if merged and merged[-1].styles == span.styles and merged[-1].href == span.href:
            merged[-1] = InlineSpan(merged[-1].text + span.text, merged[-1].styles, merged[-1].href)
        else:
            merged.append(span)
    return merged


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------


def inline_to_markdown(spans: Sequence[InlineSpan]) -> str:
    parts: list[str] = []
    for span in spans:
        text = span.text
        if span.styles.get("code"):
            text = f"`{text}`"
        if span.styles.get("bold"):
            text = f"**{text}**"
        if span.styles.get("italic"):
            text = f"*{text}*"
        if span.styles.get("strike"):
            text = f"~~{text}~~"
        if span.href is not None:
            text = f"[{text}]({span.href})"
        parts.append(text)
    return "".join(parts)


def blocks_to_markdown(blocks: Sequence[Block]) -> str:
    """Serialize ``blocks`` back to markdown for search mirrors and prompts."""

    return "\n".join(_render_sequence(blocks, "")).strip("\n") + "\n" if blocks else ""


def _render_sequence(blocks: Sequence[Block], indent: str) -> list[str]:
    lines: list[str] = []
    number = 0
    previous: Block | None = None
    for block in blocks:
        number = number + 1 if block.type == "numberedListItem" else 0
        if previous is not None and not (_is_list(previous) and _is_list(block)):
            lines.append("")
        marker, body = _render_block(block, number)
        body_lines = body.split("\n") if body else [""]
        lines.append(f"{indent}{marker}{body_lines[0]}")
        continuation = indent + " " * len(marker) if _is_list(block) else indent
        lines.extend(f"{continuation}{line}" if line else "" for line in body_lines[1:])
        if block.children:
            child_indent = indent + " " * max(len(marker), 2)
            lines.extend(_render_sequence(block.children, child_indent))
        previous = block
    return lines


def _is_list(block: Block) -> bool:
    return block.type in ("bulletListItem", "numberedListItem", "checkListItem")


def _render_block(block: Block, number: int) -> tuple[str, str]:
    spans = block.content if isinstance(block.content, list) else []
    kind = block.type
    if kind == "heading":
        level = min(max(block.level or 1, 1), 6)
        return "#" * level + " ", inline_to_markdown(spans)
    if kind == "bulletListItem":
        return "- ", inline_to_markdown(spans)
    if kind == "numberedListItem":
        return f"{max(number, 1)}. ", inline_to_markdown(spans)
    if kind == "checkListItem":
        mark = "x" if block.props.get("checked") else " "
        return f"- [{mark}] ", inline_to_markdown(spans)
    if kind == "table" and isinstance(block.content, TableContent):
        return "", _render_table(block.content)
    if kind == "image":
        return "", f"![{block.props.get('caption') or block.props.get('name') or ''}]({block.props.get('url', '')})"
    if kind == "file":
        return "", f"[{block.props.get('name') or 'file'}]({block.props.get('url', '')})"
    if kind == "codeBlock":
        return "", f"```{block.props.get('language', '')}\n{get_inline_text(spans)}\n```"
    if kind == "quote":
        return "", "\n".join(f"> {line}" for line in inline_to_markdown(spans).split("\n"))
    return "", inline_to_markdown(spans)


def _render_table(table: TableContent) -> str:
    if not table.rows:
        return ""
    width = max(len(row) for row in table.rows)
    padded = [row + [""] * (width - len(row)) for row in table.rows]
    lines = ["| " + " | ".join(padded[0]) + " |", "|" + "|".join(["---"] * width) + "|"]
    lines.extend("| " + " | ".join(row) + " |" for row in padded[1:])
    return "\n".join(lines)

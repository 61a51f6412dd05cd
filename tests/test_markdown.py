"""Tests for the markdown bridge."""

from __future__ import annotations

import pytest

from blockpilot.editor.document_model import Block, InlineSpan, TableContent
from blockpilot.editor.markdown import MarkdownBlockParser, blocks_to_markdown, inline_to_markdown


@pytest.fixture
def parser() -> MarkdownBlockParser:
    return MarkdownBlockParser()


def test_parse_heading_and_paragraph(parser: MarkdownBlockParser) -> None:
    blocks = parser.parse("## Section\n\nSome text here.")

    assert [block.type for block in blocks] == ["heading", "paragraph"]
    assert blocks[0].props == {"level": 2}
    assert blocks[0].content == [InlineSpan("Section")]
    assert blocks[1].content == [InlineSpan("Some text here.")]


def test_parse_blank_input_returns_nothing(parser: MarkdownBlockParser) -> None:
    assert parser.parse("") == []
    assert parser.parse("   \n\n") == []


def test_parse_inline_styles(parser: MarkdownBlockParser) -> None:
    (block,) = parser.parse("Plain **bold** *it* ~~gone~~ `code` [link](https://x.test)")

    by_text = {span.text: span for span in block.content}
    assert by_text["bold"].styles == {"bold": True}
    assert by_text["it"].styles == {"italic": True}
    assert by_text["gone"].styles == {"strike": True}
    assert by_text["code"].styles == {"code": True}
    assert by_text["link"].href == "https://x.test"


def test_parse_lists_with_nesting(parser: MarkdownBlockParser) -> None:
    blocks = parser.parse("- one\n  - nested\n- two\n\n1. first\n2. second")

    assert [block.type for block in blocks] == [
        "bulletListItem",
        "bulletListItem",
        "numberedListItem",
        "numberedListItem",
    ]
    assert blocks[0].children[0].type == "bulletListItem"
    assert blocks[0].children[0].content == [InlineSpan("nested")]


def test_parse_checklist_items(parser: MarkdownBlockParser) -> None:
    blocks = parser.parse("- [ ] todo\n- [x] done")

    assert [block.type for block in blocks] == ["checkListItem", "checkListItem"]
    assert blocks[0].props == {"checked": False}
    assert blocks[1].props == {"checked": True}
    assert blocks[1].content == [InlineSpan("done")]


def test_parse_table(parser: MarkdownBlockParser) -> None:
    (table,) = parser.parse("| A | B |\n| --- | --- |\n| 1 | 2 |\n| 3 | 4 |")

    assert table.type == "table"
    assert isinstance(table.content, TableContent)
    assert table.content.rows == [["A", "B"], ["1", "2"], ["3", "4"]]


def test_parse_code_quote_and_image(parser: MarkdownBlockParser) -> None:
    blocks = parser.parse("```python\nprint(1)\n```\n\n> quoted\n\n![Alt](https://x.test/a.png)")

    assert [block.type for block in blocks] == ["codeBlock", "quote", "image"]
    assert blocks[0].props == {"language": "python"}
    assert blocks[0].content == [InlineSpan("print(1)")]
    assert blocks[1].content == [InlineSpan("quoted")]
    assert blocks[2].props["url"] == "https://x.test/a.png"
    assert blocks[2].content is None


def test_parsed_blocks_get_fresh_ids(parser: MarkdownBlockParser) -> None:
    first = parser.parse("a\n\nb")
    second = parser.parse("a\n\nb")

    ids = {block.id for block in first + second}
    assert len(ids) == 4


@pytest.mark.asyncio
async def test_parse_async_matches_sync(parser: MarkdownBlockParser) -> None:
    blocks = await parser.parse_async("# Title")

    assert blocks[0].type == "heading"


def test_inline_to_markdown_wraps_styles() -> None:
    spans = [InlineSpan("a", {"bold": True}), InlineSpan(" "), InlineSpan("b", href="https://x.test")]

    assert inline_to_markdown(spans) == "**a** [b](https://x.test)"


def test_blocks_to_markdown_roundtrip(parser: MarkdownBlockParser) -> None:
    source = "# Title\n\nIntro text.\n\n- one\n- two\n\n| A | B |\n|---|---|\n| 1 | 2 |\n"

    markdown = blocks_to_markdown(parser.parse(source))
    reparsed = parser.parse(markdown)

    assert [block.type for block in reparsed] == ["heading", "paragraph", "bulletListItem", "bulletListItem", "table"]
    assert reparsed[4].content.rows == [["A", "B"], ["1", "2"]]


def test_blocks_to_markdown_numbers_and_checks() -> None:
    blocks = [
        Block(type="numberedListItem", content=[InlineSpan("first")]),
        Block(type="numberedListItem", content=[InlineSpan("second")]),
        Block(type="checkListItem", content=[InlineSpan("task")], props={"checked": True}),
    ]

    assert blocks_to_markdown(blocks) == "1. first\n2. second\n- [x] task\n"


def test_blocks_to_markdown_empty() -> None:
    assert blocks_to_markdown([]) == ""

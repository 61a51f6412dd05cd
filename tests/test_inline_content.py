"""Tests for inline span editing helpers."""

from __future__ import annotations

from blockpilot.editor.document_model import Block, InlineSpan, TableContent
from blockpilot.editor.inline_content import (
    block_text,
    delete_text_in_inline_content,
    get_inline_text,
    replace_text_in_inline_content,
)


def test_get_inline_text_handles_tables_and_media() -> None:
    assert get_inline_text([InlineSpan("a"), InlineSpan("b")]) == "ab"
    assert get_inline_text(TableContent([["x", "y"], ["1", "2"]])) == "x | y\n1 | 2"
    assert get_inline_text(None) == ""
    assert block_text(Block(type="image", content=None)) == ""


def test_replace_first_occurrence_only() -> None:
    spans = [InlineSpan("cat and cat")]

    result = replace_text_in_inline_content(spans, "cat", "dog")

    assert get_inline_text(result) == "dog and cat"


def test_replace_preserves_surrounding_styles() -> None:
    spans = [InlineSpan("Hello "), InlineSpan("bold", {"bold": True}), InlineSpan(" world")]

    result = replace_text_in_inline_content(spans, "world", "there")

    assert [span.text for span in result] == ["Hello ", "bold", " ", "there"]
    assert result[1].styles == {"bold": True}


def test_replace_across_span_boundary_takes_starting_style() -> None:
    spans = [InlineSpan("plain "), InlineSpan("strong", {"bold": True})]

    result = replace_text_in_inline_content(spans, "n str", "N-STR")

    assert get_inline_text(result) == "plaiN-STRong"
    assert result[0].text == "plai"
    assert result[1].text == "N-STR"
    assert result[1].styles == {}
    assert result[2].text == "ong"
    assert result[2].styles == {"bold": True}


def test_replace_returns_none_when_missing() -> None:
    assert replace_text_in_inline_content([InlineSpan("abc")], "zzz", "y") is None
    assert replace_text_in_inline_content([InlineSpan("abc")], "", "y") is None


def test_delete_drops_empty_spans() -> None:
    spans = [InlineSpan("keep "), InlineSpan("gone", {"italic": True})]

    result = delete_text_in_inline_content(spans, "gone")

    assert result == [InlineSpan("keep ")]


def test_delete_everything_yields_empty_list() -> None:
    assert delete_text_in_inline_content([InlineSpan("all")], "all") == []


def test_replace_does_not_mutate_input() -> None:
    spans = [InlineSpan("abc", {"bold": True})]

    replace_text_in_inline_content(spans, "b", "B")

    assert spans == [InlineSpan("abc", {"bold": True})]

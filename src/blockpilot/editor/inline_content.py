"""Helpers for reading and editing inline span sequences."""

from __future__ import annotations

from typing import Sequence

from .document_model import Block, InlineSpan, TableContent

__all__ = [
    "get_inline_text",
    "block_text",
    "replace_text_in_inline_content",
    "delete_text_in_inline_content",
]


def get_inline_text(content: Sequence[InlineSpan] | TableContent | None) -> str:
    """Return the plain text of ``content`` without any styling."""

    if content is None:
        return ""
    if isinstance(content, TableContent):
        return "\n".join(" | ".join(row) for row in content.rows)
    return "".join(span.text for span in content)


def block_text(block: Block) -> str:
    return get_inline_text(block.content)


def replace_text_in_inline_content(
    spans: Sequence[InlineSpan],
    target: str,
    replacement: str,
) -> list[InlineSpan] | None:
    """Replace the first occurrence of *target* across ``spans``.

    The match may cross span boundaries. Text before and after the match keeps
    its original styling; the replacement takes the styles of the span where the
    match starts. Returns ``None`` when *target* does not occur.
    """

    if not target:
        return None
    full_text = get_inline_text(spans)
    start = full_text.find(target)
    if start < 0:
        return None
    end = start + len(target)

    result: list[InlineSpan] = []
    inserted = False
    cursor = 0
    for span in spans:
        span_start, span_end = cursor, cursor + len(span.text)
        cursor = span_end
        if span_end <= start or span_start >= end:
            result.append(_clone(span, span.text))
            continue
        if start > span_start:
            result.append(_clone(span, span.text[: start - span_start]))
        if not inserted:
            result.append(_clone(span, replacement))
            inserted = True
        if span_end > end:
            result.append(_clone(span, span.text[end - span_start :]))
    return [span for span in result if span.text]


def delete_text_in_inline_content(spans: Sequence[InlineSpan], target: str) -> list[InlineSpan] | None:
    return replace_text_in_inline_content(spans, target, "")


def _clone(span: InlineSpan, text: str) -> InlineSpan:
    return InlineSpan(text=text, styles=dict(span.styles), href=span.href)

"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Iterator

import pytest

from blockpilot.editor.document_model import Block, BlockDocument, InlineSpan, TableContent
from blockpilot.services import telemetry
from helpers import list_item, paragraph


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Iterator[None]:
    yield
    telemetry.clear_event_listeners()


@pytest.fixture
def simple_document() -> BlockDocument:
    """Heading, two paragraphs."""
    return BlockDocument(
        [
            Block(type="heading", content=[InlineSpan("Title")], props={"level": 1}, id="h1"),
            paragraph("First paragraph.", "p1"),
            paragraph("Second paragraph.", "p2"),
        ],
        document_id="doc-simple",
    )


@pytest.fixture
def list_document() -> BlockDocument:
    """Intro paragraph, ten bullet items, closing paragraph."""
    items = [list_item(f"Item {number}", f"li{number}") for number in range(1, 11)]
    return BlockDocument(
        [paragraph("Intro", "intro"), *items, paragraph("Outro", "outro")],
        document_id="doc-list",
    )


@pytest.fixture
def mixed_document() -> BlockDocument:
    """A document with a nested list, a table and an image."""
    return BlockDocument(
        [
            paragraph("Overview of the plan.", "p1"),
            list_item("Parent", "b1", children=[list_item("Child", "b1a")]),
            list_item("Sibling", "b2"),
            Block(type="table", content=TableContent([["Name", "Qty"], ["Apples", "3"]]), id="t1"),
            Block(type="image", content=None, props={"url": "https://example.com/a.png"}, id="img1"),
            paragraph("Closing words.", "p2"),
        ],
        document_id="doc-mixed",
    )


@pytest.fixture
def empty_document() -> BlockDocument:
    return BlockDocument(document_id="doc-empty")

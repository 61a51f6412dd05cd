"""Tests for the per-document session wiring."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from blockpilot.editor.document_model import BlockDocument
from blockpilot.services.autosave import AutosaveStatus
from blockpilot.services.persistence import HttpDocumentStore, JsonFileDocumentStore
from blockpilot.services.session import DocumentSession, create_document_store
from blockpilot.services.settings import AutosaveSettings, Settings, StorageSettings
from helpers import assistant_message, tool_call


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        autosave=AutosaveSettings(debounce_seconds=0.05, saved_display_seconds=10),
        storage=StorageSettings(root=str(tmp_path / "documents")),
    )


@pytest.fixture
def store(settings: Settings) -> JsonFileDocumentStore:
    return JsonFileDocumentStore(settings.storage.root)


def _session(simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore) -> DocumentSession:
    return DocumentSession("doc-1", settings=settings, store=store, blocks=simple_document.to_list())


@pytest.mark.asyncio
async def test_tool_calls_are_autosaved(
    simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore
) -> None:
    session = _session(simple_document, settings, store)

    results = await session.process_message(
        assistant_message(tool_call("c1", "addContent", {"markdownContent": "Saved text"}))
    )
    await asyncio.sleep(0.2)

    assert results[0].status == "applied"
    assert session.autosave.status is AutosaveStatus.SAVED
    assert store.load("doc-1") == session.document.to_list()
    session.teardown()


@pytest.mark.asyncio
async def test_open_loads_stored_blocks(
    simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore
) -> None:
    await store.replace_content("doc-1", simple_document.to_list(), None)

    session = DocumentSession.open("doc-1", settings=settings, store=store)

    assert session.document.to_list() == simple_document.to_list()
    assert session.document_id == "doc-1"
    session.teardown()


def test_open_without_stored_document_is_empty(settings: Settings, store: JsonFileDocumentStore) -> None:
    session = DocumentSession.open("fresh", settings=settings, store=store)

    assert session.document.is_empty()
    session.teardown()


@pytest.mark.asyncio
async def test_restored_transcript_is_not_replayed(
    simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore
) -> None:
    session = _session(simple_document, settings, store)
    history = [
        {"role": "user", "content": "please add"},
        assistant_message(tool_call("c1", "addContent", {"markdownContent": "Old"}, state="result")),
        assistant_message(tool_call("c2", "deleteContent", {"targetBlockId": "p1"})),
    ]
    before = session.document.to_list()

    assert session.restore_transcript(history) == 2
    for message in history:
        assert await session.process_message(message) == []

    assert session.document.to_list() == before
    session.teardown()


def test_editor_context(mixed_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore) -> None:
    session = DocumentSession("doc-1", settings=settings, store=store, blocks=mixed_document.to_list())

    context = session.editor_context()

    assert context["document_id"] == "doc-1"
    assert context["version"] == session.document.version
    assert context["markdown"].startswith("Overview of the plan.")
    child = next(entry for entry in context["blocks"] if entry["id"] == "b1a")
    assert child == {"id": "b1a", "type": "bulletListItem", "level": 1, "parent_id": "b1", "text": "Child"}
    session.teardown()


@pytest.mark.asyncio
async def test_teardown_flushes_pending_changes(
    simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore
) -> None:
    settings.autosave.debounce_seconds = 30
    session = _session(simple_document, settings, store)
    await session.process_message(assistant_message(tool_call("c1", "addContent", {"markdownContent": "Unsaved"})))

    assert session.teardown() is True
    assert session.teardown() is False

    assert store.load("doc-1") == session.document.to_list()
    assert not session.autosave.has_pending_timer


@pytest.mark.asyncio
async def test_navigate_away_flushes(
    simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore
) -> None:
    settings.autosave.debounce_seconds = 30
    session = _session(simple_document, settings, store)
    await session.process_message(assistant_message(tool_call("c1", "addContent", {"markdownContent": "Leaving"})))

    assert session.navigate_away() is True
    assert store.load("doc-1") == session.document.to_list()
    session.teardown()


@pytest.mark.asyncio
async def test_aclose_drains_through_regular_save(
    simple_document: BlockDocument, settings: Settings, store: JsonFileDocumentStore
) -> None:
    settings.autosave.debounce_seconds = 30
    session = _session(simple_document, settings, store)
    await session.process_message(assistant_message(tool_call("c1", "addContent", {"markdownContent": "Closing"})))

    await session.aclose()

    assert store.load("doc-1") == session.document.to_list()


def test_autosave_can_be_disabled(settings: Settings, store: JsonFileDocumentStore) -> None:
    settings.autosave.enabled = False

    session = DocumentSession("doc-1", settings=settings, store=store)

    assert session.autosave is None
    assert session.navigate_away() is False
    assert session.teardown() is False


def test_create_document_store(tmp_path: Path) -> None:
    http_store = create_document_store(StorageSettings(backend="HTTP", base_url="https://api.test"))
    file_store = create_document_store(StorageSettings(backend="ftp", root=str(tmp_path)))

    assert isinstance(http_store, HttpDocumentStore)
    assert http_store.content_url("d") == "https://api.test/api/documents/d/content"
    assert isinstance(file_store, JsonFileDocumentStore)
    assert file_store.root == tmp_path

"""Per-document session wiring.

A :class:`DocumentSession` owns everything that lives for one open document:
the block model, the mutation executor, the tool-call dispatcher (and with it
the processed-id set) and the autosave controller.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from ..analysis.hierarchy import analyze_hierarchy
from ..editor.document_model import BlockDocument
from ..editor.inline_content import block_text
from ..editor.markdown import blocks_to_markdown
from ..orchestration.tool_dispatcher import (
    DispatchListener,
    DispatchResult,
    DocumentSurface,
    NoticeCallback,
    ToolCallDispatcher,
)
from ..orchestration.transcript import iter_transcript_events
from ..tools.executor import DocumentMutationExecutor
from .autosave import AutosaveController
from .persistence import DocumentStore, HttpDocumentStore, JsonFileDocumentStore
from .settings import Settings, StorageSettings

__all__ = ["DocumentSession", "create_document_store"]

LOGGER = logging.getLogger(__name__)


def create_document_store(storage: StorageSettings) -> DocumentStore:
    """Build the store selected by ``storage.backend``."""

    backend = (storage.backend or "file").strip().lower()
    if backend == "http":
        return HttpDocumentStore(storage.base_url, timeout=storage.request_timeout)
    if backend != "file":
        LOGGER.warning("Unknown storage backend %r; using local files", storage.backend)
    return JsonFileDocumentStore(storage.root)


class DocumentSession:
    """Open document plus the machinery that edits and persists it."""

    def __init__(
        self,
        document_id: str,
        *,
        settings: Settings | None = None,
        store: DocumentStore | None = None,
        blocks: Sequence[Mapping[str, Any]] | None = None,
        surface: DocumentSurface | None = None,
        listener: DispatchListener | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.document = BlockDocument.from_list(blocks, document_id=document_id)
        self.store = store or create_document_store(self.settings.storage)
        line_settings = self.settings.line_targeting
        self.executor = DocumentMutationExecutor(
            self.document,
            line_config=line_settings.to_config(),
            unit_config=line_settings.to_unit_config(),
        )
        self.dispatcher = ToolCallDispatcher(
            self.document,
            executor=self.executor,
            preservation_config=self.settings.preservation.to_config(),
            surface=surface,
            listener=listener,
            on_notice=on_notice,
        )
        self.autosave: AutosaveController | None = None
        if self.settings.autosave.enabled:
            self.autosave = AutosaveController(
                document_id,
                self.store,
                debounce_seconds=self.settings.autosave.debounce_seconds,
                saved_display_seconds=self.settings.autosave.saved_display_seconds,
            )
            self.document.add_listener(self.autosave.handle_document_change)
        self._closed = False
        LOGGER.debug("Opened session for document %s", document_id)

    @classmethod
    def open(
        cls,
        document_id: str,
        *,
        settings: Settings | None = None,
        store: DocumentStore | None = None,
        **kwargs: Any,
    ) -> "DocumentSession":
        """Create a session, loading stored blocks when the store supports it."""

        settings = settings or Settings()
        store = store or create_document_store(settings.storage)
        blocks = None
        if isinstance(store, JsonFileDocumentStore):
            blocks = store.load(document_id)
        return cls(document_id, settings=settings, store=store, blocks=blocks, **kwargs)

    @property
    def document_id(self) -> str:
        return self.document.document_id

    # ------------------------------------------------------------------
    # Assistant interaction
    # ------------------------------------------------------------------

    async def process_message(self, message: Mapping[str, Any]) -> list[DispatchResult]:
        return await self.dispatcher.process_message(message)

    async def notify_document_ready(self) -> list[DispatchResult]:
        return await self.dispatcher.notify_document_ready()

    async def resolve_confirmation(self, call_id: str, approved: bool) -> DispatchResult:
        return await self.dispatcher.resolve_confirmation(call_id, approved)

    def restore_transcript(self, messages: Iterable[Mapping[str, Any]]) -> int:
        """Mark every tool call of a persisted transcript as processed."""

        call_ids = [event.tool_call_id for event in iter_transcript_events(messages)]
        self.dispatcher.mark_processed(call_ids)
        return len(call_ids)

    def editor_context(self) -> dict[str, Any]:
        """Describe the document for the assistant prompt.

        Contains the markdown rendition and one entry per block so the
        assistant can address blocks by id.
        """

        blocks = [
            {
                "id": entry.block_id,
                "type": entry.block.type,
                "level": entry.level,
                "parent_id": entry.parent_id,
                "text": block_text(entry.block),
            }
            for entry in analyze_hierarchy(self.document)
        ]
        return {
            "document_id": self.document_id,
            "version": self.document.version,
            "markdown": blocks_to_markdown(self.document.blocks),
            "blocks": blocks,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def navigate_away(self) -> bool:
        """Flush unsaved changes before the user leaves the document."""

        if self.autosave is None:
            return False
        return self.autosave.flush_on_navigation()

    def teardown(self) -> bool:
        """Flush, stop autosave and detach from the document."""

        if self._closed:
            return False
        self._closed = True
        flushed = False
        if self.autosave is not None:
            flushed = self.autosave.flush_on_teardown()
            self.document.remove_listener(self.autosave.handle_document_change)
        LOGGER.debug("Closed session for document %s", self.document_id)
        return flushed

    async def aclose(self) -> None:
        """Write pending changes through the regular save path, then tear down."""

        if self.autosave is not None and not self._closed:
            await self.autosave.drain()
        self.teardown()
        if isinstance(self.store, HttpDocumentStore):
            await self.store.aclose()

"""Debounced autosave of a block document.

Every document change marks the controller dirty and (re)starts a single
debounce timer. When the timer fires the latest snapshot is written through a
:class:`~blockpilot.services.persistence.DocumentStore`. Failed saves move the
status to ``error`` and wait for the next edit or a manual save.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from ..editor.document_model import BlockDocument
from ..editor.markdown import blocks_to_markdown
from ..tools.errors import PersistenceError, ToolError
from .persistence import DocumentStore
from .telemetry import emit as telemetry_emit

__all__ = ["AutosaveStatus", "AutosaveController"]

LOGGER = logging.getLogger(__name__)


class AutosaveStatus(str, Enum):
    IDLE = "idle"
    UNSAVED = "unsaved"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


StatusListener = Callable[[AutosaveStatus], None]


class AutosaveController:
    """Persists a document a fixed delay after its last change.

    Only one debounce timer is live at a time. A timer that fires while a save
    is still running restarts the debounce instead of starting a second save,
    and a save that completes after newer edits leaves the status ``unsaved``.
    """

    def __init__(
        self,
        document_id: str,
        store: DocumentStore,
        *,
        debounce_seconds: float = 3.0,
        saved_display_seconds: float = 2.0,
    ) -> None:
        self._document_id = document_id
        self._store = store
        self._debounce_seconds = max(0.0, float(debounce_seconds))
        self._saved_display_seconds = max(0.0, float(saved_display_seconds))
        self._status = AutosaveStatus.IDLE
        self._listeners: list[StatusListener] = []
        self._timer: asyncio.TimerHandle | None = None
        self._revert_timer: asyncio.TimerHandle | None = None
        self._save_task: asyncio.Task[bool] | None = None
        self._blocks: list[dict[str, Any]] | None = None
        self._markdown: str | None = None
        self._generation = 0
        self._saved_generation = 0
        self._last_saved_at: datetime | None = None
        self._last_error: ToolError | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def status(self) -> AutosaveStatus:
        return self._status

    @property
    def last_saved_at(self) -> datetime | None:
        return self._last_saved_at

    @property
    def last_error(self) -> ToolError | None:
        return self._last_error

    @property
    def is_dirty(self) -> bool:
        return self._generation != self._saved_generation

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def is_saving(self) -> bool:
        return self._save_task is not None and not self._save_task.done()

    def add_status_listener(self, listener: StatusListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def handle_document_change(self, document: BlockDocument) -> None:
        """Document listener entry point."""

        self.mark_dirty(document)

    def mark_dirty(self, document: BlockDocument) -> None:
        """Snapshot ``document`` and restart the debounce timer.

        Must be called from code running on the event loop.
        """

        if self._closed:
            LOGGER.debug("Ignoring change for closed autosave %s", self._document_id)
            return
        self._capture(document)
        self._generation += 1
        self._cancel_revert_timer()
        self._set_status(AutosaveStatus.UNSAVED)
        self._schedule()

    def _capture(self, document: BlockDocument) -> None:
        self._blocks = document.to_list()
        markdown = blocks_to_markdown(document.blocks).strip()
        self._markdown = markdown or None

    def _schedule(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning(
                "No running event loop; change to %s stays unsaved until the next flush or manual save",
                self._document_id,
            )
            return
        self._timer = loop.call_later(self._debounce_seconds, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self.is_saving:
            LOGGER.debug("Save in flight for %s; restarting debounce", self._document_id)
            self._schedule()
            return
        self._save_task = asyncio.get_running_loop().create_task(self._save("autosave"))

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def manual_save(self) -> bool:
        """Save immediately, cancelling the pending debounce timer."""

        if self._blocks is None:
            LOGGER.warning("Manual save of %s skipped: no content captured yet", self._document_id)
            return False
        self._cancel_timer()
        if self.is_saving and self._save_task is not None:
            await asyncio.shield(self._save_task)
            if not self.is_dirty:
                return self._status is not AutosaveStatus.ERROR
        self._save_task = asyncio.get_running_loop().create_task(self._save("manual"))
        return await asyncio.shield(self._save_task)

    async def drain(self) -> None:
        """Wait for the in-flight save and write any remaining changes."""

        self._cancel_timer()
        if self._save_task is not None and not self._save_task.done():
            await asyncio.shield(self._save_task)
        if self.is_dirty and not self._closed:
            await self.manual_save()

    async def _save(self, reason: str) -> bool:
        blocks = self._blocks
        if blocks is None:
            return False
        generation = self._generation
        markdown = self._markdown
        self._cancel_revert_timer()
        self._set_status(AutosaveStatus.SAVING)
        LOGGER.debug("Saving %s (%s, generation %d)", self._document_id, reason, generation)
        try:
            updated_at = await self._store.replace_content(self._document_id, blocks, markdown)
        except PersistenceError as exc:
            return self._record_failure(exc, reason)
        except Exception as exc:
            LOGGER.exception("Unexpected error while saving %s", self._document_id)
            return self._record_failure(
                PersistenceError(message=str(exc) or type(exc).__name__, document_id=self._document_id),
                reason,
            )

        self._last_saved_at = updated_at
        self._last_error = None
        self._saved_generation = max(self._saved_generation, generation)
        telemetry_emit(
            "autosave.status",
            {"document_id": self._document_id, "status": "saved", "reason": reason},
        )
        if generation != self._generation:
            # Newer edits arrived while saving; their own timer will persist them.
            self._set_status(AutosaveStatus.UNSAVED)
            return True
        self._set_status(AutosaveStatus.SAVED)
        self._schedule_revert()
        return True

    def _record_failure(self, error: PersistenceError, reason: str) -> bool:
        self._last_error = error
        LOGGER.warning("Autosave of %s failed (%s): %s", self._document_id, reason, error.message)
        telemetry_emit(
            "autosave.status",
            {"document_id": self._document_id, "status": "error", "reason": reason, "error": error.message},
        )
        self._set_status(AutosaveStatus.ERROR)
        return False

    def _schedule_revert(self) -> None:
        self._cancel_revert_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._revert_timer = loop.call_later(self._saved_display_seconds, self._revert_to_idle)

    def _revert_to_idle(self) -> None:
        self._revert_timer = None
        if self._status is AutosaveStatus.SAVED:
            self._set_status(AutosaveStatus.IDLE)

    # ------------------------------------------------------------------
    # Synchronous flushes
    # ------------------------------------------------------------------

    def flush(self, reason: str = "flush", *, closing: bool = False) -> bool:
        """Hand unsaved content to the store's beacon without awaiting.

        Returns ``True`` when there was something to flush and the store
        accepted it. An accepted flush counts as a save: the status moves to
        ``saved`` and any previous error is cleared.
        """

        self._cancel_timer()
        if not self.is_dirty or self._blocks is None:
            return False
        generation = self._generation
        accepted = bool(self._store.send_beacon(self._document_id, self._blocks, self._markdown))
        telemetry_emit(
            "autosave.flush",
            {"document_id": self._document_id, "reason": reason, "accepted": accepted},
        )
        if not accepted:
            LOGGER.warning("Flush of %s on %s was not accepted", self._document_id, reason)
            return False
        self._saved_generation = max(self._saved_generation, generation)
        self._last_saved_at = datetime.now(timezone.utc)
        self._last_error = None
        LOGGER.debug("Flushed %s on %s", self._document_id, reason)
        self._set_status(AutosaveStatus.SAVED)
        if not closing:
            self._schedule_revert()
        return True

    def flush_on_navigation(self) -> bool:
        return self.flush("navigation")

    def flush_on_teardown(self) -> bool:
        flushed = self.flush("teardown", closing=True)
        self.close()
        return flushed

    def close(self) -> None:
        """Cancel timers and stop reacting to changes."""

        self._closed = True
        self._cancel_timer()
        self._cancel_revert_timer()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_revert_timer(self) -> None:
        if self._revert_timer is not None:
            self._revert_timer.cancel()
            self._revert_timer = None

    def _set_status(self, status: AutosaveStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:  # pragma: no cover - listeners must not break saves
                LOGGER.debug("Autosave status listener %s failed", listener, exc_info=True)

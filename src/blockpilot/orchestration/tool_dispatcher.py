"""Tool-call dispatcher for one document session.

Consumes assistant messages, executes every new tool call at most once, and
routes each call through argument parsing, planning, the content preservation
guard and the mutation executor.

- Deduplication by tool-call id (checked and recorded without awaiting)
- Deferral while a constrained surface is not showing the document
- Confirmation gate for ``replaceAllContent``
- Per-call error capture surfaced as user-visible notices
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Mapping, Protocol, Sequence

from ..analysis.conceptual_units import ConceptualUnitConfig
from ..analysis.line_targeting import LineTargetingConfig
from ..editor.document_model import BlockDocument, DocumentInvariantError
from ..safety.content_preservation import (
    DEFAULT_PRESERVATION_CONFIG,
    ContentPreservationConfig,
    ContentPreservationResult,
    check_content_preservation,
)
from ..services.telemetry import emit as telemetry_emit
from ..tools.errors import ConfirmationNotFoundError, ContentBlockedError, ErrorCode, ToolError
from ..tools.executor import DocumentMutationExecutor, MutationOutcome
from ..tools.schemas import (
    DOCUMENT_TOOLS,
    ReplaceAllContentArgs,
    RequestEditorContentArgs,
    ToolArguments,
    parse_tool_arguments,
)
from .transcript import ToolCallEvent, extract_tool_call_events

__all__ = [
    "DispatchStatus",
    "DispatchResult",
    "Notice",
    "PendingConfirmation",
    "DispatchListener",
    "DocumentSurface",
    "ToolCallDispatcher",
    "create_tool_dispatcher",
]

LOGGER = logging.getLogger(__name__)

DispatchStatus = Literal[
    "applied",
    "blocked",
    "failed",
    "deferred",
    "awaiting_confirmation",
    "declined",
    "acknowledged",
    "skipped",
]


# -----------------------------------------------------------------------------
# Results and notices
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class DispatchResult:
    """Result of dispatching one tool call.

    Attributes:
        call_id: Tool-call identifier from the transcript.
        tool_name: Name of the tool the assistant invoked.
        status: What happened to the call.
        message: Human-readable summary for the UI.
        warnings: Non-blocking notices collected while resolving and applying.
        error: Error if the call failed or was blocked.
        preservation: Guard decision, when the guard ran.
        outcome: Mutation details, when the document changed.
    """

    call_id: str
    tool_name: str
    status: DispatchStatus
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    error: ToolError | None = None
    preservation: ContentPreservationResult | None = None
    outcome: MutationOutcome | None = None
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in ("applied", "acknowledged")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "call_id": self.call_id,
            "tool_name": self.tool_name,
            "status": self.status,
            "execution_time_ms": self.execution_time_ms,
        }
        if self.message:
            data["message"] = self.message
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.preservation is not None:
            data["preservation"] = self.preservation.to_dict()
        if self.outcome is not None:
            data["outcome"] = self.outcome.to_dict()
        return data


@dataclass(slots=True, frozen=True)
class Notice:
    """Transient user-visible message produced while handling a tool call."""

    level: Literal["info", "warning", "error"]
    message: str
    call_id: str | None = None


@dataclass(slots=True)
class PendingConfirmation:
    """A ``replaceAllContent`` call parked until the user answers."""

    call_id: str
    args: ReplaceAllContentArgs
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def preview(self) -> str:
        text = self.args.new_markdown_content
        return text if len(text) <= 200 else text[:200] + "..."


@dataclass(slots=True)
class _DeferredCall:
    event: ToolCallEvent
    args: ToolArguments


# -----------------------------------------------------------------------------
# Collaborator protocols
# -----------------------------------------------------------------------------


class DispatchListener(Protocol):
    """Callback protocol for dispatch events."""

    def on_tool_start(self, tool_name: str, arguments: Mapping[str, Any] | str | None) -> None:
        """Called when a tool call starts processing."""
        ...

    def on_tool_complete(self, result: DispatchResult) -> None:
        """Called when a tool call finishes, whatever its status."""
        ...

    def on_tool_error(self, tool_name: str, error: ToolError) -> None:
        """Called when a tool call fails or is blocked."""
        ...


class DocumentSurface(Protocol):
    """A UI that may show either the document or the chat, not both."""

    def is_document_visible(self) -> bool:
        ...

    def show_document(self) -> None:
        ...


NoticeCallback = Callable[[Notice], None]


# -----------------------------------------------------------------------------
# Dispatcher
# -----------------------------------------------------------------------------


class ToolCallDispatcher:
    """Executes assistant tool calls against one document, each at most once.

    The dispatcher is per-session state: the set of processed call ids lives
    as long as the instance and is discarded with it.

    Example:
        dispatcher = ToolCallDispatcher(document)
        results = await dispatcher.process_message(message)
    """

    def __init__(
        self,
        document: BlockDocument,
        *,
        executor: DocumentMutationExecutor | None = None,
        preservation_config: ContentPreservationConfig | None = None,
        surface: DocumentSurface | None = None,
        listener: DispatchListener | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._document = document
        self._executor = executor or DocumentMutationExecutor(document)
        self._config = preservation_config or DEFAULT_PRESERVATION_CONFIG
        self._surface = surface
        self._listener = listener
        self._on_notice = on_notice
        self._processed_ids: set[str] = set()
        self._deferred: list[_DeferredCall] = []
        self._pending: dict[str, PendingConfirmation] = {}
        self._context_requested = False

    def set_listener(self, listener: DispatchListener | None) -> None:
        self._listener = listener

    def set_surface(self, surface: DocumentSurface | None) -> None:
        self._surface = surface

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def processed_ids(self) -> frozenset[str]:
        return frozenset(self._processed_ids)

    @property
    def pending_confirmations(self) -> list[PendingConfirmation]:
        return list(self._pending.values())

    @property
    def deferred_call_ids(self) -> list[str]:
        return [item.event.tool_call_id for item in self._deferred]

    @property
    def context_requested(self) -> bool:
        return self._context_requested

    def consume_context_request(self) -> bool:
        """Return and clear the flag set by ``requestEditorContent``."""

        requested = self._context_requested
        self._context_requested = False
        return requested

    def is_processed(self, call_id: str) -> bool:
        return call_id in self._processed_ids

    def mark_processed(self, call_ids: Sequence[str]) -> None:
        """Record ids from a restored transcript so they never run again."""

        self._processed_ids.update(call_ids)

    # ------------------------------------------------------------------
    # Transcript consumption
    # ------------------------------------------------------------------

    def collect_new_calls(self, message: Mapping[str, Any]) -> list[ToolCallEvent]:
        """Return the unprocessed calls of ``message`` and mark them processed.

        Finalized calls are recorded without being returned. Calls still
        streaming their arguments are left for a later delta. This method
        never awaits, so the check and the insert happen in one step.
        """

        fresh: list[ToolCallEvent] = []
        for event in extract_tool_call_events(message):
            if event.tool_call_id in self._processed_ids:
                continue
            if event.state == "partial-call":
                continue
            self._processed_ids.add(event.tool_call_id)
            if event.is_finalized:
                LOGGER.debug("Tool call %s already finalized; skipping", event.tool_call_id)
                continue
            fresh.append(event)
        return fresh

    async def process_message(self, message: Mapping[str, Any]) -> list[DispatchResult]:
        """Dispatch every new tool call carried by ``message`` in order."""

        events = self.collect_new_calls(message)
        results: list[DispatchResult] = []
        for event in events:
            results.append(await self._dispatch_recorded(event))
        return results

    async def dispatch(self, event: ToolCallEvent) -> DispatchResult:
        """Dispatch one tool call unless its id was already processed."""

        if event.tool_call_id in self._processed_ids:
            LOGGER.debug("Tool call %s already processed; skipping", event.tool_call_id)
            return DispatchResult(
                call_id=event.tool_call_id,
                tool_name=event.tool_name,
                status="skipped",
                message="Tool call was already processed",
            )
        self._processed_ids.add(event.tool_call_id)
        return await self._dispatch_recorded(event)

    async def _dispatch_recorded(self, event: ToolCallEvent) -> DispatchResult:
        start_time = datetime.now(timezone.utc)
        if self._listener:
            try:
                self._listener.on_tool_start(event.tool_name, event.args)
            except Exception:
                LOGGER.debug("Listener on_tool_start failed", exc_info=True)

        try:
            args = parse_tool_arguments(event.tool_name, event.args)
            result = await self._route(event, args, start_time)
        except ToolError as exc:
            result = self._create_error_result(event, exc, start_time)
        except Exception as exc:
            LOGGER.exception("Tool call %s (%s) failed unexpectedly", event.tool_call_id, event.tool_name)
            error = ToolError(error_code=ErrorCode.INTERNAL_ERROR, message=str(exc) or type(exc).__name__)
            result = self._create_error_result(event, error, start_time)

        self._notify_complete(result)
        return result

    async def notify_document_ready(self) -> list[DispatchResult]:
        """Run the calls deferred while the document surface was hidden."""

        queued, self._deferred = self._deferred, []
        results: list[DispatchResult] = []
        for item in queued:
            start_time = datetime.now(timezone.utc)
            try:
                result = await self._execute(item.event, item.args, start_time)
            except ToolError as exc:
                result = self._create_error_result(item.event, exc, start_time)
            except Exception as exc:
                LOGGER.exception("Deferred tool call %s failed unexpectedly", item.event.tool_call_id)
                error = ToolError(error_code=ErrorCode.INTERNAL_ERROR, message=str(exc) or type(exc).__name__)
                result = self._create_error_result(item.event, error, start_time)
            self._notify_complete(result)
            results.append(result)
        return results

    async def resolve_confirmation(self, call_id: str, approved: bool) -> DispatchResult:
        """Apply or discard a parked ``replaceAllContent`` call."""

        pending = self._pending.pop(call_id, None)
        event = ToolCallEvent(call_id, ReplaceAllContentArgs.tool_name.value)
        start_time = datetime.now(timezone.utc)
        if pending is None:
            error = ConfirmationNotFoundError(call_id=call_id)
            LOGGER.debug("Ignoring confirmation for %s: nothing pending", call_id)
            return DispatchResult(
                call_id=call_id,
                tool_name=event.tool_name,
                status="skipped",
                message=error.message,
                error=error,
            )
        if not approved:
            LOGGER.info("User declined replaceAllContent for call %s", call_id)
            result = DispatchResult(
                call_id=call_id,
                tool_name=event.tool_name,
                status="declined",
                message="Replacement declined; the document was not changed",
            )
            self._notify(Notice("info", result.message, call_id))
            self._notify_complete(result)
            return result

        if self._should_defer():
            result = self._defer(event, pending.args, start_time)
            self._notify_complete(result)
            return result
        try:
            result = await self._execute(event, pending.args, start_time)
        except ToolError as exc:
            result = self._create_error_result(event, exc, start_time)
        except Exception as exc:
            LOGGER.exception("Confirmed replaceAllContent %s failed unexpectedly", call_id)
            error = ToolError(error_code=ErrorCode.INTERNAL_ERROR, message=str(exc) or type(exc).__name__)
            result = self._create_error_result(event, error, start_time)
        self._notify_complete(result)
        return result

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def _route(self, event: ToolCallEvent, args: ToolArguments, start_time: datetime) -> DispatchResult:
        if isinstance(args, RequestEditorContentArgs):
            self._context_requested = True
            return DispatchResult(
                call_id=event.tool_call_id,
                tool_name=event.tool_name,
                status="acknowledged",
                message="Editor content will be shared with the assistant",
                execution_time_ms=_elapsed_ms(start_time),
            )

        # Confirmation comes first; an approved call is deferred on its own.
        if isinstance(args, ReplaceAllContentArgs) and args.require_confirmation:
            pending = PendingConfirmation(event.tool_call_id, args)
            self._pending[event.tool_call_id] = pending
            message = "The assistant wants to replace the whole document; confirm to continue"
            self._notify(Notice("info", message, event.tool_call_id))
            return DispatchResult(
                call_id=event.tool_call_id,
                tool_name=event.tool_name,
                status="awaiting_confirmation",
                message=message,
                execution_time_ms=_elapsed_ms(start_time),
            )

        if args.tool_name in DOCUMENT_TOOLS and self._should_defer():
            return self._defer(event, args, start_time)

        return await self._execute(event, args, start_time)

    def _defer(self, event: ToolCallEvent, args: ToolArguments, start_time: datetime) -> DispatchResult:
        self._deferred.append(_DeferredCall(event, args))
        LOGGER.debug("Deferring %s until the document view is ready", event.tool_call_id)
        if self._surface is not None:
            self._surface.show_document()
        return DispatchResult(
            call_id=event.tool_call_id,
            tool_name=event.tool_name,
            status="deferred",
            message="Waiting for the document view",
            execution_time_ms=_elapsed_ms(start_time),
        )

    async def _execute(self, event: ToolCallEvent, args: ToolArguments, start_time: datetime) -> DispatchResult:
        plan = self._executor.plan(args)
        verdict = check_content_preservation(self._document, plan.operation, self._config)
        if not verdict.is_allowed:
            error = ContentBlockedError.from_result(verdict)
            LOGGER.info("Blocked %s (%s): %s", event.tool_name, event.tool_call_id, error.message)
            telemetry_emit(
                "tool_call.blocked",
                {"call_id": event.tool_call_id, "tool_name": event.tool_name, "reason": error.message},
            )
            result = self._create_error_result(event, error, start_time)
            result.preservation = verdict
            return result

        try:
            outcome = await self._executor.apply(plan)
        except DocumentInvariantError as exc:
            raise ToolError(
                error_code=ErrorCode.INVALID_TARGET,
                message=str(exc),
                suggestion="A document must keep at least one block",
            ) from exc

        warnings = list(outcome.warnings)
        if verdict.should_warn and verdict.warning_message:
            warnings.append(verdict.warning_message)
        for warning in warnings:
            self._notify(Notice("warning", warning, event.tool_call_id))
        telemetry_emit(
            "tool_call.applied",
            {
                "call_id": event.tool_call_id,
                "tool_name": event.tool_name,
                "summary": outcome.summary,
                "warnings": len(warnings),
            },
        )
        return DispatchResult(
            call_id=event.tool_call_id,
            tool_name=event.tool_name,
            status="applied",
            message=outcome.summary,
            warnings=warnings,
            preservation=verdict,
            outcome=outcome,
            execution_time_ms=_elapsed_ms(start_time),
        )

    def _should_defer(self) -> bool:
        if self._surface is None:
            return False
        try:
            return not self._surface.is_document_visible()
        except Exception:
            LOGGER.debug("Surface visibility check failed", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Result Building
    # ------------------------------------------------------------------

    def _create_error_result(self, event: ToolCallEvent, error: ToolError, start_time: datetime) -> DispatchResult:
        status: DispatchStatus = "blocked" if isinstance(error, ContentBlockedError) else "failed"
        if status == "failed":
            LOGGER.warning("Tool call %s (%s) failed: %s", event.tool_call_id, event.tool_name, error)
            telemetry_emit(
                "tool_call.failed",
                {"call_id": event.tool_call_id, "tool_name": event.tool_name, "error": error.error_code},
            )
        message = error.message
        if error.suggestion:
            message = f"{message}. {error.suggestion}"
        self._notify(Notice("warning" if status == "blocked" else "error", message, event.tool_call_id))
        if self._listener:
            try:
                self._listener.on_tool_error(event.tool_name, error)
            except Exception:
                LOGGER.debug("Listener on_tool_error failed", exc_info=True)
        return DispatchResult(
            call_id=event.tool_call_id,
            tool_name=event.tool_name,
            status=status,
            message=error.message,
            error=error,
            execution_time_ms=_elapsed_ms(start_time),
        )

    def _notify_complete(self, result: DispatchResult) -> None:
        if self._listener:
            try:
                self._listener.on_tool_complete(result)
            except Exception:
                LOGGER.debug("Listener on_tool_complete failed", exc_info=True)

    def _notify(self, notice: Notice) -> None:
        if self._on_notice is None:
            return
        try:
            self._on_notice(notice)
        except Exception:
            LOGGER.debug("Notice callback failed", exc_info=True)


def _elapsed_ms(start_time: datetime) -> float:
    return (datetime.now(timezone.utc) - start_time).total_seconds() * 1000


# -----------------------------------------------------------------------------
# Factory Functions
# -----------------------------------------------------------------------------


def create_tool_dispatcher(
    document: BlockDocument,
    *,
    preservation_config: ContentPreservationConfig | None = None,
    line_config: LineTargetingConfig | None = None,
    unit_config: ConceptualUnitConfig | None = None,
    surface: DocumentSurface | None = None,
    on_notice: NoticeCallback | None = None,
) -> ToolCallDispatcher:
    """Create a dispatcher and its executor for ``document``.

    Args:
        document: Document the tool calls mutate.
        preservation_config: Guard thresholds.
        line_config: Line targeting options used for insertion points.
        unit_config: Block types grouped into conceptual units.
        surface: Optional single-view surface that triggers deferral.
        on_notice: Callback receiving user-visible notices.

    Returns:
        Configured ToolCallDispatcher instance.
    """
    executor = DocumentMutationExecutor(document, line_config=line_config, unit_config=unit_config)
    return ToolCallDispatcher(
        document,
        executor=executor,
        preservation_config=preservation_config,
        surface=surface,
        on_notice=on_notice,
    )

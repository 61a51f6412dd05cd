"""In-process telemetry events for tool calls and persistence."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

__all__ = [
    "TelemetryCallback",
    "register_event_listener",
    "unregister_event_listener",
    "clear_event_listeners",
    "emit",
]

LOGGER = logging.getLogger(__name__)

TelemetryCallback = Callable[[dict[str, Any]], None]

_EVENT_LISTENERS: dict[str, list[TelemetryCallback]] = {}


def register_event_listener(event_name: str, callback: TelemetryCallback) -> None:
    """Register a callback invoked whenever :func:`emit` fires *event_name*."""

    if not event_name or callback is None:
        return
    listeners = _EVENT_LISTENERS.setdefault(event_name, [])
    if callback not in listeners:
        listeners.append(callback)


def unregister_event_listener(event_name: str, callback: TelemetryCallback) -> None:
    listeners = _EVENT_LISTENERS.get(event_name)
    if not listeners:
        return
    try:
        listeners.remove(callback)
    except ValueError:
        return
    if not listeners:
        _EVENT_LISTENERS.pop(event_name, None)


def clear_event_listeners() -> None:
    _EVENT_LISTENERS.clear()


def emit(event_name: str, payload: Mapping[str, Any] | None = None) -> None:
    """Broadcast a structured telemetry event to in-process listeners."""

    if not event_name:
        return
    event_payload = {"event": event_name}
    if payload:
        event_payload.update(payload)
    listeners = list(_EVENT_LISTENERS.get(event_name, ()))
    for callback in listeners:
        try:
            callback(dict(event_payload))
        except Exception:  # pragma: no cover - listeners must not break emitters
            LOGGER.debug("Telemetry listener %s failed", callback, exc_info=True)
    LOGGER.debug("Telemetry emit %s: %s", event_name, event_payload)

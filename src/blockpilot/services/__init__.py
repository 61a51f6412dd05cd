"""Service layer helpers (settings, persistence, autosave, telemetry)."""

from .autosave import AutosaveController, AutosaveStatus
from .persistence import DocumentStore, HttpDocumentStore, JsonFileDocumentStore
from .settings import Settings, SettingsStore
from .telemetry import emit, register_event_listener, unregister_event_listener

__all__ = [
    "AutosaveController",
    "AutosaveStatus",
    "DocumentStore",
    "HttpDocumentStore",
    "JsonFileDocumentStore",
    "Settings",
    "SettingsStore",
    "emit",
    "register_event_listener",
    "unregister_event_listener",
]

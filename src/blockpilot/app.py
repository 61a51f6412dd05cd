"""Bootstrap helpers for hosts embedding the mutation engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from .services.session import DocumentSession
from .services.settings import Settings, SettingsStore
from .utils import logging as logging_utils

__all__ = ["configure_logging", "load_settings", "open_session"]

_LOGGER = logging.getLogger(__name__)


def configure_logging(
    settings: Settings,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Configure logging from ``settings``; ``debug_logging`` wins over ``log_level``."""

    level = logging.DEBUG if settings.debug_logging else logging_utils.resolve_level(settings.log_level)
    log_path = logging_utils.setup_logging(level, log_dir=log_dir, console=console, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def open_session(
    document_id: str,
    *,
    settings_path: Optional[Path] = None,
    settings: Settings | None = None,
    log_dir: Path | str | None = None,
    console: bool = True,
    **kwargs: Any,
) -> DocumentSession:
    """Load settings, configure logging and open a session for ``document_id``."""

    active = settings or load_settings(settings_path)
    configure_logging(active, log_dir=log_dir, console=console)
    return DocumentSession.open(document_id, settings=active, **kwargs)

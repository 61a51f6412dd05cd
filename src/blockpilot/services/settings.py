"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..analysis.conceptual_units import DEFAULT_GROUPABLE_TYPES, ConceptualUnitConfig
from ..analysis.line_targeting import LineTargetingConfig
from ..safety.content_preservation import ContentPreservationConfig

__all__ = [
    "Settings",
    "SettingsStore",
    "PreservationSettings",
    "LineTargetingSettings",
    "AutosaveSettings",
    "StorageSettings",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".blockpilot"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
# Dotted names address fields of the nested settings groups.
_ENV_OVERRIDES: Mapping[str, str] = {
    "BLOCKPILOT_LOG_LEVEL": "log_level",
    "BLOCKPILOT_STORAGE_BACKEND": "storage.backend",
    "BLOCKPILOT_STORAGE_ROOT": "storage.root",
    "BLOCKPILOT_API_BASE_URL": "storage.base_url",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "BLOCKPILOT_DEBUG_LOGGING": "debug_logging",
    "BLOCKPILOT_PROTECT_SPECIAL_BLOCKS": "preservation.protect_special_blocks",
    "BLOCKPILOT_RESPECT_UNIT_BOUNDARIES": "line_targeting.respect_unit_boundaries",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "BLOCKPILOT_AUTOSAVE_DEBOUNCE": "autosave.debounce_seconds",
    "BLOCKPILOT_MAX_BATCH_DELETE_PERCENT": "preservation.max_batch_delete_percent",
    "BLOCKPILOT_REQUEST_TIMEOUT": "storage.request_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "BLOCKPILOT_MAX_SEARCH_DISTANCE": "line_targeting.max_search_distance",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class PreservationSettings:
    """Thresholds for the content preservation guard."""

    max_replacement_ratio: float = 0.1
    min_content_threshold: int = 100
    max_batch_delete_percent: float = 75.0
    warn_on_large_changes: bool = True
    protect_special_blocks: bool = True

    def to_config(self) -> ContentPreservationConfig:
        return ContentPreservationConfig(
            max_replacement_ratio=float(self.max_replacement_ratio),
            min_content_threshold=int(self.min_content_threshold),
            max_batch_delete_percent=float(self.max_batch_delete_percent),
            warn_on_large_changes=bool(self.warn_on_large_changes),
            protect_special_blocks=bool(self.protect_special_blocks),
        )


@dataclass(slots=True)
class LineTargetingSettings:
    include_empty_lines: bool = True
    respect_unit_boundaries: bool = True
    include_non_text_blocks: bool = True
    max_search_distance: int = 100
    groupable_types: list[str] = field(default_factory=lambda: sorted(DEFAULT_GROUPABLE_TYPES))

    def to_config(self) -> LineTargetingConfig:
        return LineTargetingConfig(
            include_empty_lines=bool(self.include_empty_lines),
            respect_unit_boundaries=bool(self.respect_unit_boundaries),
            include_non_text_blocks=bool(self.include_non_text_blocks),
            max_search_distance=max(0, int(self.max_search_distance)),
        )

    def to_unit_config(self) -> ConceptualUnitConfig:
        return ConceptualUnitConfig(groupable_types=frozenset(self.groupable_types))


@dataclass(slots=True)
class AutosaveSettings:
    """Debounce timing for background saves."""

    enabled: bool = True
    debounce_seconds: float = 3.0
    saved_display_seconds: float = 2.0


@dataclass(slots=True)
class StorageSettings:
    """Where documents are persisted.

    ``backend`` is ``"file"`` (JSON files under ``root``) or ``"http"``
    (``base_url`` of the document API).
    """

    backend: str = "file"
    root: str = str(_SETTINGS_DIR / "documents")
    base_url: str = "http://localhost:3000"
    request_timeout: float = 10.0


_NESTED_TYPES: Mapping[str, type] = {
    "preservation": PreservationSettings,
    "line_targeting": LineTargetingSettings,
    "autosave": AutosaveSettings,
    "storage": StorageSettings,
}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    log_level: str = "INFO"
    debug_logging: bool = False
    preservation: PreservationSettings = field(default_factory=PreservationSettings)
    line_targeting: LineTargetingSettings = field(default_factory=LineTargetingSettings)
    autosave: AutosaveSettings = field(default_factory=AutosaveSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    metadata: dict[str, Any] = field(default_factory=dict)


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying runtime/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            for name, nested_type in _NESTED_TYPES.items():
                nested_payload = data.get(name)
                if isinstance(nested_payload, Mapping):
                    data[name] = _build_nested(nested_type, nested_payload)
                elif name in data:
                    data.pop(name)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if payload.get("version") != _SETTINGS_VERSION:
                LOGGER.debug("Settings file %s has version %s", self._path, payload.get("version"))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        data = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        nested: Dict[str, Dict[str, Any]] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            group, _, name = key.partition(".")
            if name:
                if group in _NESTED_TYPES:
                    nested.setdefault(group, {})[name] = value
                continue
            if key not in allowed:
                continue
            if key in _NESTED_TYPES and isinstance(value, Mapping):
                nested.setdefault(key, {}).update(value)
                continue
            filtered[key] = value
        for group, values in nested.items():
            current = getattr(settings, group)
            known = {field.name for field in fields(current)}
            updates = {name: value for name, value in values.items() if name in known}
            if updates:
                filtered[group] = replace(current, **updates)
        metadata_override = filtered.get("metadata")
        if isinstance(metadata_override, Mapping):
            merged_metadata = dict(settings.metadata or {})
            merged_metadata.update(metadata_override)
            filtered["metadata"] = merged_metadata
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _build_nested(nested_type: type, payload: Mapping[str, Any]) -> Any:
    known = {field.name for field in fields(nested_type)}
    data = {key: value for key, value in payload.items() if key in known}
    try:
        return nested_type(**data)
    except TypeError:
        LOGGER.warning("Ignoring invalid %s payload", nested_type.__name__)
        return nested_type()

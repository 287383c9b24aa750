"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = ["Settings", "SettingsStore", "DEFAULT_SETTINGS_PATH", "ENV_PREFIX"]

LOGGER = logging.getLogger(__name__)
ENV_PREFIX = "SUMMARYBRIDGE_"
_SETTINGS_DIR = Path.home() / ".summarybridge"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "SUMMARYBRIDGE_UPLOAD_URL": "upload_url",
    "SUMMARYBRIDGE_STATUS_URL": "status_url",
    "SUMMARYBRIDGE_CHAT_URL": "chat_url",
    "SUMMARYBRIDGE_COMPANY_API_URL": "company_api_url",
    "SUMMARYBRIDGE_LANGUAGE": "language",
    "SUMMARYBRIDGE_STATE_PATH": "state_path",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "SUMMARYBRIDGE_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "SUMMARYBRIDGE_UPLOAD_TIMEOUT": "upload_timeout",
    "SUMMARYBRIDGE_INITIAL_POLL_DELAY": "initial_poll_delay",
    "SUMMARYBRIDGE_POLL_INTERVAL": "poll_interval",
    "SUMMARYBRIDGE_POLL_REQUEST_TIMEOUT": "poll_request_timeout",
    "SUMMARYBRIDGE_CHAT_TIMEOUT": "chat_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "SUMMARYBRIDGE_POLL_MAX_ATTEMPTS": "poll_max_attempts",
    "SUMMARYBRIDGE_UPLOAD_RETRIES": "upload_retries",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions.

    Durations are in seconds. ``upload_retries`` counts attempts made after
    the first one.
    """

    upload_url: str = "https://agent-beta.endare.com/webhook/NN-demo"
    status_url: str = "https://agent-beta.endare.com/webhook/get-summary"
    chat_url: str = "https://agent-beta.endare.com/webhook/f5ed7916-342d-4de2-ac40-4d24d1e2e471/chat"
    company_api_url: str = "https://openthebox.be/api/companies"
    language: str = "NL"
    upload_timeout: float = 120.0
    upload_retries: int = 2
    upload_retry_backoff: float = 1.0
    initial_poll_delay: float = 60.0
    poll_max_attempts: int = 30
    poll_interval: float = 10.0
    poll_request_timeout: float = 30.0
    poll_retryable_statuses: list[int] = field(default_factory=lambda: [404, 202, 425])
    chat_timeout: float = 120.0
    unwrap_depth: int = 4
    state_path: str | None = None
    default_headers: dict[str, str] = field(default_factory=dict)
    debug_logging: bool = False

    def resolved_state_path(self) -> Path:
        if self.state_path:
            return Path(self.state_path).expanduser()
        return _SETTINGS_DIR / "state.json"


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            LOGGER.debug("Settings loaded from %s (%d field(s))", self._path, len(data))

        if payload and payload.get("version") != _SETTINGS_VERSION:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - defensive guard
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
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
        allowed = {item.name for item in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
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
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}

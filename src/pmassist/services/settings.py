"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_DEFAULT_SETTINGS_PATH = Path.home() / ".pmassist" / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "PMASSIST_API_KEY": "api_key",
    "PMASSIST_BASE_URL": "base_url",
    "PMASSIST_MODEL": "model",
    "PMASSIST_ORGANIZATION": "organization",
    "PMASSIST_ENVIRONMENT": "environment",
    "PMASSIST_LOG_DIR": "log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "PMASSIST_DEBUG_LOGGING": "debug_logging",
    "PMASSIST_EXPOSE_DIAGNOSTICS": "expose_diagnostics",
    "PMASSIST_LOG_TO_CONSOLE": "log_to_console",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "PMASSIST_REQUEST_TIMEOUT": "request_timeout",
    "PMASSIST_TEMPERATURE": "temperature",
    "PMASSIST_CACHE_TTL": "cache_ttl_seconds",
    "PMASSIST_RATE_LIMIT_WINDOW": "rate_limit_window_seconds",
    "PMASSIST_RETRY_BASE_DELAY": "retry_base_delay",
    "PMASSIST_RETRY_MAX_DELAY": "retry_max_delay",
    "PMASSIST_PROPOSAL_TTL": "proposal_ttl_seconds",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "PMASSIST_MAX_TOOL_ITERATIONS": "max_tool_iterations",
    "PMASSIST_HISTORY_LIMIT": "history_limit",
    "PMASSIST_RATE_LIMIT_MAX": "rate_limit_max_requests",
    "PMASSIST_RETRY_ATTEMPTS": "retry_max_attempts",
    "PMASSIST_MAX_COMPLETION_TOKENS": "max_completion_tokens",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the assistant service."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    organization: str | None = None
    temperature: float = 0.2
    request_timeout: float = 60.0
    max_completion_tokens: int = 1024
    max_tool_iterations: int = 5
    history_limit: int = 10
    max_message_chars: int = 4_000
    cache_ttl_seconds: float = 60.0
    cache_max_entries: int = 1_024
    rate_limit_max_requests: int = 20
    rate_limit_window_seconds: float = 60.0
    retry_max_attempts: int = 3
    retry_base_delay: float = 0.2
    retry_max_delay: float = 2.0
    retry_jitter: float = 0.2
    proposal_ttl_seconds: float = 900.0
    environment: str = "production"
    expose_diagnostics: bool = False
    debug_logging: bool = False
    log_dir: str | None = None
    log_to_console: bool = True
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"production", "prod"}

    @property
    def diagnostics_enabled(self) -> bool:
        """Diagnostics are never exposed in production, whatever the flag says."""
        return self.expose_diagnostics and not self.is_production


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
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            LOGGER.debug("Settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes. The API key is never written."""

        data = asdict(settings)
        data.pop("api_key", None)
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
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
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
    allowed = {field.name for field in fields(Settings)} - {"api_key"}
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"

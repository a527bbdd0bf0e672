"""Service layer: settings and the chat request handler."""

from .settings import Settings, SettingsStore, redact_secret

__all__ = ["Settings", "SettingsStore", "redact_secret"]

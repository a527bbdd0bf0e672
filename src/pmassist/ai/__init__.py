"""AI client, dialogue loop and tool wiring."""

from .client import AIClient, ClientSettings, ModelClient

__all__ = ["AIClient", "ClientSettings", "ModelClient"]

"""Conversational assistant for project-management data."""

__version__ = "0.1.0"

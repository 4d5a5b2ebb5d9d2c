"""Normalize captured AI chat payloads into canonical conversations and messages."""

__version__ = "0.1.0"

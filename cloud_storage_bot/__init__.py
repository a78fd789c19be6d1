"""Telegram bot and HTTP server for token-scoped file storage."""

__version__ = "0.1.0"

"""Sync Notion pages and databases into a WordPress-style content store."""

__version__ = "0.1.0"

"""Configuration management for notionpress.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_HOME = Path.home() / ".notionpress"

EXTERNAL_MEDIA_STRATEGIES = ("link", "download")


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Storage
    db_path: Path
    media_dir: Path

    # Notion
    notion_api_key: Optional[str]
    request_timeout: int  # seconds

    # Target site
    site_url: str

    # Sync
    batch_size: int
    max_block_batches: int

    # Background jobs
    job_max_attempts: int
    job_retry_base_delay: float  # seconds

    # Media
    external_media_strategy: str  # link, download
    defer_media: bool

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path = Path(
            os.environ.get("NOTIONPRESS_DB_PATH", str(DEFAULT_HOME / "notionpress.db"))
        ).expanduser()
        media_dir = Path(
            os.environ.get("NOTIONPRESS_MEDIA_DIR", str(DEFAULT_HOME / "media"))
        ).expanduser()

        return cls(
            db_path=db_path,
            media_dir=media_dir,
            notion_api_key=os.environ.get("NOTION_API_KEY"),
            request_timeout=int(os.environ.get("NOTIONPRESS_REQUEST_TIMEOUT", "30")),
            site_url=os.environ.get("NOTIONPRESS_SITE_URL", "http://localhost").rstrip("/"),
            batch_size=int(os.environ.get("NOTIONPRESS_BATCH_SIZE", "20")),
            max_block_batches=int(os.environ.get("NOTIONPRESS_MAX_BLOCK_BATCHES", "50")),
            job_max_attempts=int(os.environ.get("NOTIONPRESS_JOB_MAX_ATTEMPTS", "5")),
            job_retry_base_delay=float(
                os.environ.get("NOTIONPRESS_JOB_RETRY_DELAY", "1.0")
            ),
            external_media_strategy=os.environ.get("NOTIONPRESS_EXTERNAL_MEDIA", "link"),
            defer_media=_env_bool("NOTIONPRESS_DEFER_MEDIA", True),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.batch_size < 1:
            errors.append("NOTIONPRESS_BATCH_SIZE must be at least 1")

        if self.max_block_batches < 1:
            errors.append("NOTIONPRESS_MAX_BLOCK_BATCHES must be at least 1")

        if self.external_media_strategy not in EXTERNAL_MEDIA_STRATEGIES:
            errors.append(
                f"NOTIONPRESS_EXTERNAL_MEDIA must be one of {', '.join(EXTERNAL_MEDIA_STRATEGIES)}"
            )

        return errors

    def has_notion_config(self) -> bool:
        """Check if Notion configuration is present."""
        return bool(self.notion_api_key)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None

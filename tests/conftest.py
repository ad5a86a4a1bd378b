"""Pytest configuration and shared fixtures.

This module provides fixtures for testing notionpress, including a
temporary database, the link and media collaborators, a job queue driven
by a fake clock, a fake Notion client and a real client with no network.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator, Optional
from unittest.mock import patch

import httpx
import pytest

from notionpress.api.notion import NotionClient
from notionpress.config import reset_config
from notionpress.db.sqlite import Database, reset_db
from notionpress.media import DownloadedFile, MediaPipeline, MediaRegistry
from notionpress.router import LinkRegistry, LinkResolver
from notionpress.store import DocumentStore
from notionpress.sync.jobs import JobQueue

from builders import SITE_URL, FakeClock, FakeNotionClient


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path, tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    os.environ["NOTIONPRESS_DB_PATH"] = str(temp_db_path)
    os.environ["NOTIONPRESS_MEDIA_DIR"] = str(tmp_path / "media")
    os.environ["NOTIONPRESS_SITE_URL"] = SITE_URL

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()
    reset_config()
    for name in ("NOTIONPRESS_DB_PATH", "NOTIONPRESS_MEDIA_DIR", "NOTIONPRESS_SITE_URL"):
        os.environ.pop(name, None)


@pytest.fixture
def store(db: Database) -> DocumentStore:
    """Document store on the test database."""
    return DocumentStore(db)


@pytest.fixture
def link_registry(db: Database) -> LinkRegistry:
    """Link registry on the test database."""
    return LinkRegistry(db)


@pytest.fixture
def resolver(link_registry: LinkRegistry) -> LinkResolver:
    """Link resolver with a fixed site URL."""
    return LinkResolver(link_registry, site_url=SITE_URL)


# ============================================================================
# Job and Media Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock shared by the job queue."""
    return FakeClock()


@pytest.fixture
def queue(db: Database, clock: FakeClock) -> JobQueue:
    """Job queue that never really sleeps."""
    return JobQueue(db, max_attempts=3, base_delay=1.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def media_registry(db: Database) -> MediaRegistry:
    """Media registry on the test database."""
    return MediaRegistry(db)


class FakeDownloader:
    """Downloader stand-in that writes a tiny file per call."""

    def __init__(self, media_dir: Path):
        self.media_dir = media_dir
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None

    def download(self, url: str, filename: Optional[str] = None) -> DownloadedFile:
        self.calls.append(url)
        if self.fail_with is not None:
            raise self.fail_with
        path = self.media_dir / f"{filename}.png"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x89PNG")
        return DownloadedFile(path=path, mime_type="image/png", size=4, source_url=url)


@pytest.fixture
def fake_downloader(tmp_path: Path) -> FakeDownloader:
    """Downloader that never touches the network."""
    return FakeDownloader(tmp_path / "media")


@pytest.fixture
def media(media_registry: MediaRegistry, fake_downloader: FakeDownloader, queue: JobQueue) -> MediaPipeline:
    """Media pipeline that defers downloads to the job queue."""
    return MediaPipeline(
        media_registry,
        downloader=fake_downloader,
        queue=queue,
        defer=True,
        media_url=f"{SITE_URL}/media",
    )


# ============================================================================
# Notion Fixtures
# ============================================================================


@pytest.fixture
def notion() -> FakeNotionClient:
    """Fake Notion client."""
    return FakeNotionClient()


@pytest.fixture
def unreachable_notion(monkeypatch: pytest.MonkeyPatch) -> Generator[NotionClient, None, None]:
    """Real NotionClient whose SDK cannot open a connection."""
    monkeypatch.setenv("NOTION_API_KEY", "secret_test")
    reset_config()
    refused = httpx.ConnectError("[Errno 111] Connection refused")
    with patch("notionpress.api.notion.Client") as client_cls:
        sdk = client_cls.return_value
        sdk.pages.retrieve.side_effect = refused
        sdk.blocks.children.list.side_effect = refused
        sdk.search.side_effect = refused
        sdk.request.side_effect = refused
        client = NotionClient()
        client._min_request_interval = 0
        yield client
    reset_config()

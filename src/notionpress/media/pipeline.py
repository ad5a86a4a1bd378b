"""Media pipeline: decide, download, register and resolve.

Notion-hosted image and file URLs expire after about an hour, so those are copied
locally. Stable third-party URLs stay direct links unless configured
otherwise. Downloads can run inline or as background jobs; in the second
case converted content carries a ``notion-media://<block id>`` placeholder
that ``resolve_placeholders`` swaps for the stored URL.
"""

import logging
import re
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit

from ..blocks.rich_text import sanitize_url
from ..config import get_config
from ..db.schemas import MediaStatus
from ..errors import MediaError
from ..utils import normalize_id
from .downloader import FileDownloader, ImageDownloader
from .registry import MediaRegistry

if TYPE_CHECKING:
    from ..sync.jobs import JobQueue

logger = logging.getLogger(__name__)

DOWNLOAD_HOOK = "media.download"
PLACEHOLDER_PREFIX = "notion-media://"

IMAGE = "image"
FILE = "file"

_PLACEHOLDER = re.compile(re.escape(PLACEHOLDER_PREFIX) + r"([0-9a-z]+)")

# Time-limited Notion storage
NOTION_STORAGE_PATTERNS = (
    "s3.us-west-2.amazonaws.com/secure.notion-static.com",
    "s3-us-west-2.amazonaws.com/secure.notion-static.com",
    "prod-files-secure.s3.us-west-2.amazonaws.com",
)

# Linked, never mirrored
LINK_ONLY_HOSTS = ("images.unsplash.com", "giphy.com")


def placeholder(source_block_id: str) -> str:
    """Placeholder URL for media whose download is pending."""
    return f"{PLACEHOLDER_PREFIX}{normalize_id(source_block_id)}"


class MediaPipeline:
    """Copies remote media locally and rewrites references to it."""

    def __init__(
        self,
        registry: MediaRegistry,
        downloader: Optional[ImageDownloader] = None,
        file_downloader: Optional[FileDownloader] = None,
        queue: Optional["JobQueue"] = None,
        defer: Optional[bool] = None,
        external_strategy: Optional[str] = None,
        media_url: Optional[str] = None,
    ):
        """Initialize the pipeline.

        Args:
            registry: Media registry
            downloader: Image downloader (creates one if not provided)
            file_downloader: Downloader for file and PDF attachments
            queue: Job queue for deferred downloads; downloads run inline without one
            defer: Queue downloads instead of running them inline (uses config if not provided)
            external_strategy: "link" or "download" for other third-party URLs
            media_url: Public base URL of the media directory
        """
        config = get_config()
        self.registry = registry
        self.downloader = downloader or ImageDownloader()
        self.file_downloader = file_downloader or FileDownloader()
        self.queue = queue
        self.defer = config.defer_media if defer is None else defer
        self.external_strategy = external_strategy or config.external_media_strategy
        self.media_url = (media_url or f"{config.site_url}/media").rstrip("/")

        if self.queue is not None:
            self.queue.register(DOWNLOAD_HOOK, self.handle_download_job)

    def should_download(self, url: str) -> bool:
        """Whether a media URL must be copied locally.

        True for Notion's time-limited storage URLs, false for stable
        third-party hosts, otherwise whatever the external media strategy says.
        """
        if not url:
            return False
        if any(pattern in url for pattern in NOTION_STORAGE_PATTERNS):
            return True

        host = (urlsplit(url).hostname or "").lower()
        if any(host == h or host.endswith("." + h) for h in LINK_ONLY_HOSTS):
            return False

        return self.external_strategy == "download"

    def _downloader_for(self, kind: str) -> ImageDownloader:
        return self.file_downloader if kind == FILE else self.downloader

    def download_and_register(self, source_block_id: str, url: str, kind: str = IMAGE) -> str:
        """Return the local URL for a block's media, downloading it if needed.

        Raises:
            MediaError: If the download failed
        """
        cached = self.registry.find_downloaded(source_block_id)
        if cached and cached.local_url and not self.registry.needs_redownload(source_block_id, url):
            return cached.local_url

        if cached:
            logger.info("Media changed in Notion, downloading block %s again", source_block_id)

        try:
            downloaded = self._downloader_for(kind).download(
                url, filename=normalize_id(source_block_id)
            )
        except MediaError as e:
            self.registry.mark_failed(source_block_id, url, str(e))
            raise

        local_url = f"{self.media_url}/{downloaded.path.name}"
        self.registry.register(
            source_block_id,
            source_url=url,
            local_path=str(downloaded.path),
            local_url=local_url,
            mime_type=downloaded.mime_type,
        )
        logger.debug("Stored %s for block %s at %s", kind, source_block_id, downloaded.path)
        return local_url

    def process(
        self,
        source_block_id: str,
        url: str,
        source_page_id: Optional[str] = None,
        kind: str = IMAGE,
    ) -> Optional[str]:
        """Local URL for an image or file, or None when its download was queued.

        Raises:
            MediaError: If an inline download failed
        """
        cached = self.registry.find_downloaded(source_block_id)
        if cached and cached.local_url and not self.registry.needs_redownload(source_block_id, url):
            return cached.local_url

        if self.defer and self.queue is not None:
            self.schedule(source_block_id, url, source_page_id, kind)
            return None

        return self.download_and_register(source_block_id, url, kind)

    def schedule(
        self,
        source_block_id: str,
        url: str,
        source_page_id: Optional[str] = None,
        kind: str = IMAGE,
    ) -> int:
        """Queue a background download for a block's media."""
        if self.queue is None:
            raise MediaError("No job queue configured for deferred downloads")

        self.registry.mark_pending(source_block_id, url)
        group = f"media:{normalize_id(source_page_id)}" if source_page_id else None
        return self.queue.enqueue(
            DOWNLOAD_HOOK,
            {"source_block_id": normalize_id(source_block_id), "url": url, "kind": kind},
            group=group,
        )

    def handle_download_job(self, source_block_id: str, url: str, kind: str = IMAGE) -> None:
        """Background job: download one image or file unless it is already stored."""
        cached = self.registry.find_downloaded(source_block_id)
        if cached and not self.registry.needs_redownload(source_block_id, url):
            logger.debug("Media for block %s already stored, skipping", source_block_id)
            return
        self.download_and_register(source_block_id, url, kind)

    def resolve_placeholders(self, content: str) -> str:
        """Replace pending-media placeholders with their stored URLs.

        Placeholders of failed downloads become direct links to the source
        URL; still-pending ones are left in place.
        """
        block_ids = _PLACEHOLDER.findall(content or "")
        if not block_ids:
            return content

        entries = self.registry.find_many(block_ids)

        def _replace(match: re.Match) -> str:
            entry = entries.get(match.group(1))
            if entry is None:
                return match.group(0)
            if entry.status == MediaStatus.DOWNLOADED and entry.local_url:
                return sanitize_url(entry.local_url) or match.group(0)
            if entry.status == MediaStatus.FAILED:
                return sanitize_url(entry.source_url) or match.group(0)
            return match.group(0)

        return _PLACEHOLDER.sub(_replace, content)

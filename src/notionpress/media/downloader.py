"""Image and file downloaders.

Fetch remote media into the local media directory with URL security
checks, bounded retries, a size limit and a MIME allow-list.
"""

import ipaddress
import logging
import mimetypes
import re
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlsplit

import requests

from ..config import get_config
from ..errors import MediaError

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "image/bmp",
)

FILE_MIME_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "text/csv",
    "text/markdown",
    "application/zip",
    "application/x-zip-compressed",
    "application/x-7z-compressed",
    "application/json",
    "application/xml",
    "text/xml",
)

_SAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class UnsafeURLError(MediaError):
    """Raised for URLs that must never be fetched."""

    pass


@dataclass
class DownloadedFile:
    """A file saved to the media directory."""

    path: Path
    mime_type: str
    size: int
    source_url: str


def _resolve_host(host: str) -> list[str]:
    """All IP addresses a host name resolves to."""
    return sorted({info[4][0] for info in socket.getaddrinfo(host, None)})


class ImageDownloader:
    """Downloads images with security checks and retries."""

    MAX_RETRIES = 3
    TIMEOUT_SECONDS = 30
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
    ALLOWED_MIME_TYPES = IMAGE_MIME_TYPES
    MEDIA_KIND = "image"
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        media_dir: Optional[Path] = None,
        timeout: Optional[int] = None,
        resolve_host: Callable[[str], list[str]] = _resolve_host,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the downloader.

        Args:
            media_dir: Directory to save files in (uses config if not provided)
            timeout: Request timeout in seconds
            resolve_host: Host name resolver used by the private-IP check
            sleep: Sleep function used between retries
        """
        self.media_dir = Path(media_dir or get_config().media_dir)
        self.timeout = timeout or self.TIMEOUT_SECONDS
        self.resolve_host = resolve_host
        self.sleep = sleep
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "notionpress/0.1"})

    def validate_url(self, url: str) -> None:
        """Reject URLs that are malformed, not http(s), or point at private hosts.

        Raises:
            UnsafeURLError: If the URL must not be fetched
        """
        try:
            parsed = urlsplit(url)
        except ValueError:
            raise UnsafeURLError(f"Invalid URL format: {url}")

        if parsed.scheme not in ("http", "https"):
            raise UnsafeURLError("Only HTTP/HTTPS protocols allowed")
        if not parsed.hostname:
            raise UnsafeURLError(f"Invalid URL format: {url}")

        try:
            addresses = self.resolve_host(parsed.hostname)
        except OSError as e:
            raise UnsafeURLError(f"Could not resolve host {parsed.hostname}: {e}")

        for address in addresses:
            ip = ipaddress.ip_address(address)
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_reserved
                or ip.is_link_local
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise UnsafeURLError("Access to internal/private IPs not allowed")

    def download(self, url: str, filename: Optional[str] = None) -> DownloadedFile:
        """Download a remote image or file.

        Args:
            url: Media URL
            filename: Base name for the saved file (extension is added)

        Returns:
            The saved file

        Raises:
            MediaError: If the URL is unsafe or every attempt failed
        """
        self.validate_url(url)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                return self._attempt_download(url, filename)
            except MediaError as e:
                last_error = e
                logger.debug("Download attempt %d for %s failed: %s", attempt, url, e)
                if attempt < self.MAX_RETRIES:
                    self.sleep(2 ** (attempt - 1))

        raise MediaError(
            f"Failed to download {self.MEDIA_KIND} after {self.MAX_RETRIES} attempts: {last_error}"
        )

    def _attempt_download(self, url: str, filename: Optional[str]) -> DownloadedFile:
        try:
            response = self._session.get(url, timeout=self.timeout, stream=True)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise MediaError("Request timed out")
        except requests.exceptions.HTTPError as e:
            raise MediaError(f"HTTP request returned status code: {e.response.status_code}")
        except requests.exceptions.RequestException as e:
            raise MediaError(f"HTTP request failed: {e}")

        with response:
            mime_type = self._detect_mime_type(response, url)
            if mime_type not in self.ALLOWED_MIME_TYPES:
                raise MediaError(f"Invalid MIME type: {mime_type}")

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > self.MAX_FILE_SIZE:
                raise MediaError(self._size_error(int(declared)))

            data = bytearray()
            for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                data.extend(chunk)
                if len(data) > self.MAX_FILE_SIZE:
                    raise MediaError(self._size_error(len(data)))

        if not data:
            raise MediaError("Downloaded file is empty")

        path = self.media_dir / self._filename(url, filename, mime_type)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bytes(data))

        return DownloadedFile(path=path, mime_type=mime_type, size=len(data), source_url=url)

    def _size_error(self, size: int) -> str:
        return (
            f"File size ({size} bytes) exceeds maximum allowed size "
            f"({self.MAX_FILE_SIZE} bytes)"
        )

    @staticmethod
    def _detect_mime_type(response: requests.Response, url: str) -> str:
        content_type = response.headers.get("Content-Type", "")
        mime_type = content_type.split(";", 1)[0].strip().lower()
        if mime_type and mime_type != "application/octet-stream":
            return mime_type
        guessed, _ = mimetypes.guess_type(urlsplit(url).path)
        return guessed or "application/octet-stream"

    def _filename(self, url: str, filename: Optional[str], mime_type: str) -> str:
        stem = filename or Path(urlsplit(url).path).stem or self.MEDIA_KIND
        stem = _SAFE_FILENAME.sub("-", stem).strip("-.") or self.MEDIA_KIND
        extension = mimetypes.guess_extension(mime_type) or ""
        if mime_type in ("image/jpeg", "image/jpg"):
            extension = ".jpg"
        return f"{stem}{extension}"


class FileDownloader(ImageDownloader):
    """Downloads file attachments such as PDFs and office documents."""

    MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MiB
    ALLOWED_MIME_TYPES = FILE_MIME_TYPES
    MEDIA_KIND = "file"

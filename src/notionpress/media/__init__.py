"""Media download, registry and placeholder resolution."""

from .downloader import DownloadedFile, FileDownloader, ImageDownloader, UnsafeURLError
from .pipeline import DOWNLOAD_HOOK, MediaPipeline, placeholder
from .registry import MediaRegistry

__all__ = [
    "DOWNLOAD_HOOK",
    "DownloadedFile",
    "FileDownloader",
    "ImageDownloader",
    "MediaPipeline",
    "MediaRegistry",
    "UnsafeURLError",
    "placeholder",
]

"""
Service layer modules.

The archive pipeline, leaf first: path building, downloading, settings
cache, album/tag resolution, uploading, cleanup, notification, and the
orchestrators that tie them together.
"""

from .album_tag_resolver import AlbumTagResolver
from .archive_service import ArchiveService
from .cleanup import CleanupManager
from .downloader import Downloader, DownloaderUnavailableError, DownloadError
from .entry_processor import EntryProcessor
from .notifier import NotificationError, Notifier
from .path_builder import PathBuilder
from .settings_cache import RemoteSettingsCache
from .uploader import DirectUpload, SignedUrlUpload, Uploader, UploadError

__all__ = [
    "AlbumTagResolver",
    "ArchiveService",
    "CleanupManager",
    "Downloader",
    "DownloaderUnavailableError",
    "DownloadError",
    "EntryProcessor",
    "NotificationError",
    "Notifier",
    "PathBuilder",
    "RemoteSettingsCache",
    "DirectUpload",
    "SignedUrlUpload",
    "Uploader",
    "UploadError",
]

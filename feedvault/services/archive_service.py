"""
Archive sequence for one entry: download → upload → cleanup.

Runs on an archive worker thread.  Nothing raised here reaches the
webhook caller; every failure ends the sequence for this entry, is logged
and counted, and leaves the dedup record untouched.
"""

import time
from typing import Optional

from ..models import ArchiveTask
from ..observability.errors import ErrorTracker
from ..observability.metrics import MetricsCollector
from ..utils import setup_logger
from .cleanup import CleanupManager
from .downloader import Downloader, DownloaderUnavailableError, DownloadError
from .path_builder import PathBuilder
from .uploader import Uploader, UploadError

# Outcomes reported by ArchiveService.run
ARCHIVED = "archived"  # downloaded, no upload configured
UPLOADED = "uploaded"
CLEANED = "cleaned"
SKIPPED = "skipped"
FAILED = "failed"
CANCELLED = "cancelled"
TIMED_OUT = "timed_out"


class ArchiveService:
    def __init__(
        self,
        path_builder: PathBuilder,
        downloader: Downloader,
        uploader: Optional[Uploader] = None,
        cleanup_manager: Optional[CleanupManager] = None,
        cleanup_after_upload: bool = False,
    ):
        self.path_builder = path_builder
        self.downloader = downloader
        self.uploader = uploader
        self.cleanup_manager = cleanup_manager
        self.cleanup_after_upload = cleanup_after_upload
        self.logger = setup_logger("archive_service", "archive.log")
        self.metrics = MetricsCollector()
        self.error_tracker = ErrorTracker()

    def run(self, task: ArchiveTask) -> str:
        """Run the archive sequence for *task* and return its outcome."""
        started = time.monotonic()
        try:
            outcome = self._run(task)
        except Exception as e:
            self.logger.error("Archive task %s crashed: %s", task.hash, e)
            self.error_tracker.capture_exception(extra={"entry_hash": task.hash})
            outcome = FAILED
        duration_ms = (time.monotonic() - started) * 1000
        self.metrics.inc("archive_tasks_total", labels={"outcome": outcome})
        self.metrics.observe("archive_duration_ms", duration_ms)
        self.logger.info("Archive task %s finished: %s (%.0f ms)", task.hash, outcome, duration_ms)
        return outcome

    def _run(self, task: ArchiveTask) -> str:
        halted = self._halted(task)
        if halted:
            return halted

        archive_dir = self.path_builder.build_path(
            task.author, task.category, task.published_at, task.hash
        )
        try:
            archive_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error("Error creating directory %s: %s", archive_dir, e)
            return FAILED

        try:
            self.downloader.download(archive_dir, task.url, timeout=task.remaining())
        except DownloaderUnavailableError as e:
            self.logger.warning("Skipping archive of %s: %s", task.url, e)
            return SKIPPED
        except DownloadError as e:
            self.logger.error("Error in download for %s: %s", task.url, e)
            self.error_tracker.capture_exception(
                e, extra={"entry_hash": task.hash, "stage": "download"}
            )
            if task.expired():
                return TIMED_OUT
            return FAILED

        if self.uploader is None or not self.uploader.is_configured():
            return ARCHIVED

        halted = self._halted(task)
        if halted:
            return halted

        self.logger.info("Starting Chibisafe upload for: %s", archive_dir)
        try:
            report = self.uploader.upload_directory(
                archive_dir, task.category, task.author, task.title
            )
        except UploadError as e:
            self.logger.error("Error uploading to Chibisafe: %s", e)
            self.error_tracker.capture_exception(
                e, extra={"entry_hash": task.hash, "stage": "upload"}
            )
            return FAILED
        self.logger.info(
            "Chibisafe upload completed for %s: %d uploaded, %d failed, %d skipped",
            archive_dir,
            len(report.uploaded),
            len(report.failed),
            len(report.skipped),
        )

        if not (self.cleanup_after_upload and self.cleanup_manager):
            return UPLOADED

        halted = self._halted(task)
        if halted:
            return halted

        self.cleanup_manager.cleanup(archive_dir)
        return CLEANED

    def _halted(self, task: ArchiveTask) -> Optional[str]:
        if task.cancelled:
            self.logger.info("Archive task %s cancelled", task.hash)
            return CANCELLED
        if task.expired():
            self.logger.warning("Archive task %s exceeded its deadline", task.hash)
            return TIMED_OUT
        return None

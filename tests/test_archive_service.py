"""Tests for ArchiveService: the download → upload → cleanup sequence."""

import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from feedvault.models import ArchiveTask, UploadReport
from feedvault.observability.errors import ErrorTracker
from feedvault.observability.metrics import MetricsCollector
from feedvault.services.archive_service import (
    ARCHIVED,
    CANCELLED,
    CLEANED,
    FAILED,
    SKIPPED,
    TIMED_OUT,
    UPLOADED,
    ArchiveService,
)
from feedvault.services.cleanup import CleanupManager
from feedvault.services.downloader import DownloaderUnavailableError, DownloadError
from feedvault.services.path_builder import PathBuilder
from feedvault.services.uploader import UploadError


def _task(**overrides):
    fields = dict(
        hash="abc123",
        url="https://www.patreon.com/posts/1",
        author="Jane",
        category="Patreon",
        title="New Set",
        published_at=datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return ArchiveTask(**fields)


@pytest.fixture
def base(tmp_path):
    return tmp_path / "archive"


@pytest.fixture
def downloader():
    return MagicMock()


@pytest.fixture
def uploader():
    uploader = MagicMock()
    uploader.is_configured.return_value = True
    uploader.upload_directory.return_value = UploadReport()
    return uploader


def _service(base, downloader, uploader=None, cleanup=False):
    return ArchiveService(
        PathBuilder(base),
        downloader,
        uploader=uploader,
        cleanup_manager=CleanupManager(base),
        cleanup_after_upload=cleanup,
    )


class TestArchiveService:
    def test_download_only_without_uploader(self, base, downloader):
        outcome = _service(base, downloader).run(_task())

        expected_dir = base / "Jane - Patreon" / "2024" / "03 - March" / "abc123"
        assert outcome == ARCHIVED
        assert expected_dir.is_dir()
        args = downloader.download.call_args
        assert args.args == (expected_dir, "https://www.patreon.com/posts/1")

    def test_upload_after_download(self, base, downloader, uploader):
        outcome = _service(base, downloader, uploader).run(_task())

        assert outcome == UPLOADED
        directory, category, author, title = uploader.upload_directory.call_args.args
        assert (category, author, title) == ("Patreon", "Jane", "New Set")
        assert directory.name == "abc123"

    def test_cleanup_when_enabled(self, base, downloader, uploader):
        outcome = _service(base, downloader, uploader, cleanup=True).run(_task())

        assert outcome == CLEANED
        assert not (base / "Jane - Patreon").exists()
        assert base.exists()

    def test_no_cleanup_when_upload_raises(self, base, downloader, uploader):
        uploader.upload_directory.side_effect = UploadError("album")
        service = _service(base, downloader, uploader, cleanup=True)

        assert service.run(_task()) == FAILED
        assert (base / "Jane - Patreon" / "2024" / "03 - March" / "abc123").exists()
        assert ErrorTracker().recent_errors()[0]["context"]["stage"] == "upload"

    def test_unconfigured_uploader_is_skipped(self, base, downloader, uploader):
        uploader.is_configured.return_value = False
        assert _service(base, downloader, uploader).run(_task()) == ARCHIVED
        uploader.upload_directory.assert_not_called()

    def test_missing_tool_skips(self, base, downloader, uploader):
        downloader.download.side_effect = DownloaderUnavailableError("gallery-dl not found")
        assert _service(base, downloader, uploader).run(_task()) == SKIPPED
        uploader.upload_directory.assert_not_called()

    def test_download_failure(self, base, downloader, uploader):
        downloader.download.side_effect = DownloadError("exit 1", "bad url")

        assert _service(base, downloader, uploader).run(_task()) == FAILED
        uploader.upload_directory.assert_not_called()
        mc = MetricsCollector()
        assert mc.counter_value("archive_tasks_total", labels={"outcome": "failed"}) == 1

    def test_cancelled_before_start(self, base, downloader):
        task = _task()
        task.cancel()

        assert _service(base, downloader).run(task) == CANCELLED
        downloader.download.assert_not_called()

    def test_deadline_passed_before_start(self, base, downloader):
        task = _task(timeout_seconds=10, enqueued_at=time.monotonic() - 100)

        assert _service(base, downloader).run(task) == TIMED_OUT
        downloader.download.assert_not_called()

    def test_download_timeout_reports_timed_out(self, base, downloader):
        task = _task(timeout_seconds=30)

        def slow_download(directory, url, timeout=None):
            task.enqueued_at -= 60
            raise DownloadError("timed out")

        downloader.download.side_effect = slow_download
        assert _service(base, downloader).run(task) == TIMED_OUT

    def test_unexpected_error_is_captured(self, base, downloader):
        downloader.download.side_effect = RuntimeError("kaboom")

        assert _service(base, downloader).run(_task()) == FAILED
        errors = ErrorTracker().recent_errors()
        assert errors[0]["error_type"] == "RuntimeError"
        assert errors[0]["context"]["entry_hash"] == "abc123"

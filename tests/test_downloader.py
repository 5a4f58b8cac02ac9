"""Tests for the gallery-dl Downloader wrapper."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from feedvault.services.downloader import (
    Downloader,
    DownloaderUnavailableError,
    DownloadError,
)


@pytest.fixture
def downloader():
    return Downloader("gallery-dl", timeout_seconds=100)


class TestBuildCommand:
    def test_flat_destination(self, downloader):
        cmd = downloader.build_command(Path("/t"), "https://x/post")
        assert cmd == [
            "gallery-dl",
            "--dest",
            "/t",
            "--no-mtime",
            "--option",
            "directory=[]",
            "https://x/post",
        ]


class TestDownload:
    @patch("shutil.which", return_value=None)
    def test_missing_tool(self, mock_which, downloader, tmp_path):
        with pytest.raises(DownloaderUnavailableError):
            downloader.download(tmp_path, "https://x/post")

    @patch("subprocess.run")
    @patch("shutil.which", return_value="/usr/bin/gallery-dl")
    def test_success(self, mock_which, mock_run, downloader, tmp_path):
        mock_run.return_value = MagicMock(returncode=0, stdout="ok")

        downloader.download(tmp_path, "https://x/post")

        args, kwargs = mock_run.call_args
        assert args[0][-1] == "https://x/post"
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["timeout"] == 100

    @patch("subprocess.run")
    @patch("shutil.which", return_value="/usr/bin/gallery-dl")
    def test_nonzero_exit_keeps_output(self, mock_which, mock_run, downloader, tmp_path):
        mock_run.return_value = MagicMock(returncode=1, stdout="[error] Unsupported URL")

        with pytest.raises(DownloadError) as excinfo:
            downloader.download(tmp_path, "https://x/post")
        assert "status 1" in str(excinfo.value)
        assert excinfo.value.output == "[error] Unsupported URL"

    @patch("subprocess.run")
    @patch("shutil.which", return_value="/usr/bin/gallery-dl")
    def test_timeout(self, mock_which, mock_run, downloader, tmp_path):
        mock_run.side_effect = subprocess.TimeoutExpired(
            cmd="gallery-dl", timeout=100, output=b"partial"
        )

        with pytest.raises(DownloadError, match="timed out") as excinfo:
            downloader.download(tmp_path, "https://x/post")
        assert excinfo.value.output == "partial"

    @patch("subprocess.run")
    @patch("shutil.which", return_value="/usr/bin/gallery-dl")
    def test_caller_deadline_shortens_timeout(self, mock_which, mock_run, downloader, tmp_path):
        mock_run.return_value = MagicMock(returncode=0, stdout="")

        downloader.download(tmp_path, "https://x/post", timeout=7.5)
        assert mock_run.call_args.kwargs["timeout"] == 7.5

    @patch("subprocess.run", side_effect=PermissionError("denied"))
    @patch("shutil.which", return_value="/usr/bin/gallery-dl")
    def test_start_failure(self, mock_which, mock_run, downloader, tmp_path):
        with pytest.raises(DownloadError, match="could not be started"):
            downloader.download(tmp_path, "https://x/post")

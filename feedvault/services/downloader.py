"""
gallery-dl wrapper.

Fetches every asset behind a post URL into one flat directory.
"""

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from ..constants import DEFAULT_DOWNLOAD_TIMEOUT_SECONDS, DEFAULT_DOWNLOADER
from ..utils import setup_logger


class DownloadError(Exception):
    """gallery-dl failed; ``output`` holds its combined stdout/stderr."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class DownloaderUnavailableError(DownloadError):
    """The downloader executable is not on PATH."""


class Downloader:
    """Runs the external downloader against a target directory."""

    def __init__(
        self,
        executable: str = DEFAULT_DOWNLOADER,
        timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    ):
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self.logger = setup_logger("downloader", "archive.log")

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def build_command(self, target_dir: Path, url: str) -> List[str]:
        # directory=[] stops gallery-dl from nesting category/user folders
        return [
            self.executable,
            "--dest",
            str(target_dir),
            "--no-mtime",
            "--option",
            "directory=[]",
            url,
        ]

    def download(self, target_dir: Path, url: str, timeout: Optional[float] = None) -> None:
        """
        Download *url* into *target_dir*.

        Args:
            target_dir: Existing directory that receives the files
            url: Post URL understood by gallery-dl
            timeout: Upper bound in seconds; the smaller of this and the
                configured timeout is applied

        Raises:
            DownloaderUnavailableError: gallery-dl is not installed
            DownloadError: non-zero exit, start failure or timeout
        """
        if not self.is_available():
            raise DownloaderUnavailableError(f"{self.executable} not found in PATH")

        effective_timeout = self.timeout_seconds
        if timeout is not None:
            effective_timeout = min(effective_timeout, timeout) if effective_timeout else timeout

        cmd = self.build_command(target_dir, url)
        self.logger.info("Starting download for: %s", url)
        self.logger.debug("Running: %s", " ".join(cmd))

        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=effective_timeout or None,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            raise DownloadError(
                f"{self.executable} timed out after {effective_timeout}s", output
            ) from e
        except OSError as e:
            raise DownloadError(f"{self.executable} could not be started: {e}") from e

        if proc.returncode != 0:
            raise DownloadError(
                f"{self.executable} exited with status {proc.returncode}\nOutput: {proc.stdout}",
                proc.stdout or "",
            )

        self.logger.info("Download completed for: %s", url)

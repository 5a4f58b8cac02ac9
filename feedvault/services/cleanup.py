"""Post-upload removal of local archive copies."""

from pathlib import Path

from ..models import CleanupReport
from ..utils import setup_logger


class CleanupManager:
    """Deletes an uploaded archive directory and the empty buckets above it.

    Never touches *base_directory* itself or anything above it.
    """

    def __init__(self, base_directory: Path):
        self.base_directory = Path(base_directory)
        self.logger = setup_logger("cleanup", "archive.log")

    def cleanup(self, directory: Path) -> CleanupReport:
        """
        Remove the regular files directly inside *directory*, then the
        directory, then each empty ancestor up to the base directory.

        Per-file and directory removal failures are logged, not raised.
        """
        directory = Path(directory)
        report = CleanupReport()

        if not directory.exists():
            self.logger.info("Directory %s does not exist, nothing to clean up", directory)
            return report

        for path in directory.iterdir():
            if path.is_dir():
                continue
            try:
                path.unlink()
                report.files_removed += 1
            except OSError as e:
                self.logger.warning("Failed to remove file %s: %s", path, e)
                report.files_failed += 1

        try:
            directory.rmdir()
            report.dir_removed = True
        except OSError as e:
            self.logger.info(
                "Note: could not remove directory %s (may contain subdirectories): %s",
                directory,
                e,
            )

        report.parents_removed = self._prune_empty_parents(directory.parent)
        self.logger.info(
            "Cleanup completed: removed %d files from %s", report.files_removed, directory
        )
        return report

    def _prune_empty_parents(self, directory: Path) -> list:
        removed = []
        base = self.base_directory
        while directory not in (base, base.parent):
            # Stop if we have walked out of the archive tree entirely
            if base not in directory.parents:
                break
            try:
                if any(directory.iterdir()):
                    break
                directory.rmdir()
            except OSError:
                break
            self.logger.info("Removed empty directory: %s", directory)
            removed.append(directory)
            directory = directory.parent
        return removed

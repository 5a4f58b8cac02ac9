"""
Background worker threads.

Each module exposes a callable that runs in a daemon thread.
"""

from .archive_worker import ArchiveQueue, archive_worker

__all__ = ["ArchiveQueue", "archive_worker"]

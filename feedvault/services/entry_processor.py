"""
Per-entry orchestration: dedup check → persist → mark read → queue
archive task → notify.

Only the dedup check and the insert can fail the entry.  Everything after
the insert is either queued (archive) or best-effort (mark read, notify).
"""

import re
import sqlite3
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from ..models import ArchiveRecord, ArchiveTask, ContentEntry, Feed, ProcessResult
from ..observability.metrics import MetricsCollector
from ..utils import KeyedLock, best_effort, setup_logger

if TYPE_CHECKING:
    from ..app_state import AppState
    from ..clients.miniflux_client import MinifluxClient
    from ..workers.archive_worker import ArchiveQueue
    from .notifier import Notifier


# fromisoformat before 3.11 only accepts 3 or 6 fraction digits.
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_published_at(value: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; None if it cannot be parsed.

    Fractional seconds of any length are accepted and cut to microseconds.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


class EntryProcessor:
    """Handles one feed entry from a webhook batch."""

    def __init__(
        self,
        app_state: "AppState",
        archive_queue: Optional["ArchiveQueue"] = None,
        miniflux: Optional["MinifluxClient"] = None,
        notifier: Optional["Notifier"] = None,
        task_timeout_seconds: Optional[float] = None,
    ):
        self.app_state = app_state
        self.archive_queue = archive_queue
        self.miniflux = miniflux
        self.notifier = notifier
        self.task_timeout_seconds = task_timeout_seconds
        self.logger = setup_logger("entry_processor", "webhook.log")
        self.metrics = MetricsCollector()
        self._hash_locks = KeyedLock()

    def process(self, feed: Feed, entry: ContentEntry) -> ProcessResult:
        """
        Record *entry* once and schedule its archive.

        Returns:
            ProcessResult; ``created`` is False for an already-seen hash.

        Raises:
            sqlite3.Error: the dedup store could not be read or written.
        """
        result = ProcessResult(hash=entry.hash)
        self.metrics.inc("entries_received_total")

        with self._hash_locks.hold(entry.hash):
            if self.app_state.post_exists(entry.hash):
                self.logger.info("Entry already exists: %s", entry.hash)
                self.metrics.inc("entries_duplicate_total")
                return result

            published_at = parse_published_at(entry.published_at)
            if published_at is None:
                self.logger.warning(
                    "Error parsing date %r for entry %s, using current time",
                    entry.published_at,
                    entry.hash,
                )
                published_at = datetime.now(timezone.utc)

            record = ArchiveRecord.from_entry(feed, entry, published_at)
            try:
                self.app_state.create_post(record)
            except sqlite3.IntegrityError:
                # Another process inserted the same hash between check and insert
                self.logger.info("Entry recorded concurrently, skipping: %s", entry.hash)
                self.metrics.inc("entries_duplicate_total")
                return result

        result.created = True
        self.metrics.inc("entries_persisted_total")

        if self.miniflux is not None:
            outcome = self.mark_read_best_effort(entry)
            result.side_calls.append(outcome)

        task = ArchiveTask(
            hash=entry.hash,
            url=entry.url,
            author=entry.author,
            category=feed.category.title,
            title=entry.title,
            published_at=published_at,
            timeout_seconds=self.task_timeout_seconds,
        )
        if self.archive_queue is not None:
            result.archive_scheduled = self.archive_queue.submit(task)
        else:
            self.logger.warning("Archiving disabled, not scheduling %s", entry.hash)

        if self.notifier is not None and self.notifier.is_configured():
            outcome = self.notify_best_effort(feed, entry)
            result.side_calls.append(outcome)

        return result

    def mark_read_best_effort(self, entry: ContentEntry):
        return best_effort(
            f"mark entry {entry.id} as read",
            self.miniflux.mark_entry_as_read,
            entry.id,
            logger=self.logger,
        )

    def notify_best_effort(self, feed: Feed, entry: ContentEntry):
        return best_effort(
            f"notification for entry {entry.hash}",
            self.notifier.notify,
            feed,
            entry,
            logger=self.logger,
        )

"""
Value types passed between the webhook, the dedup store and the archive
pipeline.

Trigger payload types are built from the decoded JSON body with
``from_dict``; missing keys fall back to empty values rather than raising,
matching how the feed reader omits optional fields.  Values of the wrong
JSON type raise ``InvalidPayloadError``.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class InvalidPayloadError(ValueError):
    """A member of the webhook body has the wrong JSON type."""


def _object(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidPayloadError(f"{what} must be an object")
    return value


def _array(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidPayloadError(f"{what} must be an array")
    return value


@dataclass(frozen=True)
class Category:
    id: int = 0
    title: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Category":
        data = _object(data, "category")
        return cls(id=int(data.get("id") or 0), title=data.get("title") or "")


@dataclass(frozen=True)
class Feed:
    id: int = 0
    site_url: str = ""
    title: str = ""
    feed_url: str = ""
    category: Category = field(default_factory=Category)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Feed":
        data = _object(data, "feed")
        return cls(
            id=int(data.get("id") or 0),
            site_url=data.get("site_url") or "",
            title=data.get("title") or "",
            feed_url=data.get("feed_url") or "",
            category=Category.from_dict(data.get("category")),
        )


@dataclass(frozen=True)
class Enclosure:
    id: int = 0
    url: str = ""
    mime_type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Enclosure":
        data = _object(data, "enclosure")
        return cls(
            id=int(data.get("id") or 0),
            url=data.get("url") or "",
            mime_type=data.get("mime_type") or "",
        )


@dataclass(frozen=True)
class ContentEntry:
    """One unit of content from an upstream feed, identified by ``hash``."""

    id: int
    hash: str
    title: str = ""
    url: str = ""
    published_at: str = ""
    content: str = ""
    author: str = ""
    enclosures: Tuple[Enclosure, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentEntry":
        data = _object(data, "entry")
        return cls(
            id=int(data.get("id") or 0),
            hash=data.get("hash") or "",
            title=data.get("title") or "",
            url=data.get("url") or "",
            published_at=data.get("published_at") or "",
            content=data.get("content") or "",
            author=data.get("author") or "",
            enclosures=tuple(
                Enclosure.from_dict(e) for e in _array(data.get("enclosures"), "enclosures")
            ),
        )


@dataclass(frozen=True)
class WebhookPayload:
    event_type: str
    feed: Feed
    entries: List[ContentEntry]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebhookPayload":
        data = _object(data, "payload")
        try:
            return cls(
                event_type=str(data.get("event_type") or ""),
                feed=Feed.from_dict(data.get("feed")),
                entries=[ContentEntry.from_dict(e) for e in _array(data.get("entries"), "entries")],
            )
        except InvalidPayloadError:
            raise
        except (TypeError, ValueError) as e:
            # non-numeric ids
            raise InvalidPayloadError(str(e)) from e


@dataclass(frozen=True)
class ArchiveRecord:
    """Row persisted once per hash in the dedup store."""

    site_url: str
    entry_id: int
    hash: str
    title: str
    url: str
    published_at: datetime
    content: str
    author: str
    category_id: int
    category_title: str

    @classmethod
    def from_entry(cls, feed: Feed, entry: ContentEntry, published_at: datetime) -> "ArchiveRecord":
        return cls(
            site_url=feed.site_url,
            entry_id=entry.id,
            hash=entry.hash,
            title=entry.title,
            url=entry.url,
            published_at=published_at,
            content=entry.content,
            author=entry.author,
            category_id=feed.category.id,
            category_title=feed.category.title,
        )


@dataclass(frozen=True)
class RemoteItem:
    """An album or tag on the asset host."""

    uuid: str
    name: str


@dataclass(frozen=True)
class UploadedFile:
    local_path: Path
    name: str
    uuid: str


@dataclass
class UploadReport:
    uploaded: List[UploadedFile] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    strategy: str = ""


@dataclass
class CleanupReport:
    files_removed: int = 0
    files_failed: int = 0
    dir_removed: bool = False
    parents_removed: List[Path] = field(default_factory=list)


@dataclass(frozen=True)
class BestEffortResult:
    """Outcome of a side call whose failure is reported, never raised."""

    operation: str
    ok: bool
    error: Optional[str] = None


@dataclass
class ArchiveTask:
    """Everything the archive sequence needs for one entry."""

    hash: str
    url: str
    author: str
    category: str
    title: str
    published_at: datetime
    timeout_seconds: Optional[float] = None
    enqueued_at: float = field(default_factory=time.monotonic)
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def deadline(self) -> Optional[float]:
        if not self.timeout_seconds:
            return None
        return self.enqueued_at + self.timeout_seconds

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` when unbounded."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


@dataclass
class ProcessResult:
    """What ``EntryProcessor.process`` did for one entry."""

    hash: str
    created: bool = False
    archive_scheduled: bool = False
    side_calls: List[BestEffortResult] = field(default_factory=list)

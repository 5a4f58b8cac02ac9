"""
Discord webhook notifications for newly recorded entries.

Builds one embed per entry: feed icon (from the feed's own RSS/Atom
document, falling back to a per-category icon), a colour per category,
and a preview image picked from enclosures or the entry's HTML.
"""

import re
import time
from typing import Any, Dict, Optional

import feedparser
import requests

from ..constants import (
    CATEGORY_COLORS,
    CATEGORY_ICONS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_NOTIFY_THROTTLE_SECONDS,
    IMAGE_URL_EXTENSIONS,
    PLACEHOLDER_IMAGE_URL,
    UNCATEGORIZED,
)
from ..models import ContentEntry, Feed
from ..observability.metrics import MetricsCollector
from ..utils import setup_logger

_IMG_SRC_RE = re.compile(r'<img[^>]+src="([^"]+)"')
_A_HREF_IMAGE_RE = re.compile(r'<a[^>]+href="([^"]+\.(?:jpg|jpeg|png|gif|webp|bmp|svg))"')
_BARE_IMAGE_URL_RE = re.compile(r'https?://[^\s"<>]+\.(?:jpg|jpeg|png|gif|webp|bmp|svg|tiff)')


class NotificationError(Exception):
    """The webhook rejected or never received the notification."""


def looks_like_image_url(url: str) -> bool:
    lowered = url.lower()
    return any(ext in lowered for ext in IMAGE_URL_EXTENSIONS)


def extract_image_from_content(content: str) -> Optional[str]:
    """First image URL in *content*: ``<img src>``, ``<a href>``, then any bare URL."""
    for url in _IMG_SRC_RE.findall(content):
        if looks_like_image_url(url):
            return url

    match = _A_HREF_IMAGE_RE.search(content)
    if match:
        return match.group(1)

    match = _BARE_IMAGE_URL_RE.search(content)
    if match:
        return match.group(0)
    return None


def pick_preview_image(entry: ContentEntry) -> str:
    for enclosure in entry.enclosures:
        if enclosure.mime_type.startswith("image/"):
            return enclosure.url
    return extract_image_from_content(entry.content) or PLACEHOLDER_IMAGE_URL


def category_style(category_title: str) -> tuple:
    """``(color, icon_url)`` for a category; exact, case-sensitive match."""
    color = CATEGORY_COLORS.get(category_title, CATEGORY_COLORS["default"])
    icon = CATEGORY_ICONS.get(category_title, CATEGORY_ICONS["default"])
    return color, icon


class Notifier:
    """Posts a rich embed to a Discord webhook."""

    def __init__(
        self,
        webhook_url: str,
        throttle_seconds: float = DEFAULT_NOTIFY_THROTTLE_SECONDS,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self.webhook_url = webhook_url or ""
        self.throttle_seconds = throttle_seconds
        self.timeout = timeout
        self.logger = setup_logger("notifier", "notifier.log")
        self.metrics = MetricsCollector()

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    def resolve_feed_icon(self, feed_url: str) -> Optional[str]:
        """Channel image from an RSS feed, or logo / icon from an Atom feed."""
        if not feed_url:
            return None
        try:
            resp = requests.get(feed_url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            self.logger.warning("Error fetching feed %s: %s", feed_url, e)
            return None

        parsed = feedparser.parse(resp.content)
        meta = parsed.get("feed", {})
        image = meta.get("image") or {}
        icon = image.get("href") or image.get("url") or meta.get("logo") or meta.get("icon")
        if not icon:
            self.logger.debug("No icon found in feed XML for %s", feed_url)
        return icon or None

    def build_payload(self, feed: Feed, entry: ContentEntry) -> Dict[str, Any]:
        category_title = feed.category.title or UNCATEGORIZED
        color, category_icon = category_style(category_title)
        icon_url = self.resolve_feed_icon(feed.feed_url) or category_icon

        return {
            "embeds": [
                {
                    "title": entry.title,
                    "url": entry.url,
                    "color": color,
                    "author": {
                        "name": entry.author,
                        "url": feed.site_url,
                        "icon_url": icon_url,
                    },
                    "footer": {"text": category_title, "icon_url": category_icon},
                    "timestamp": entry.published_at,
                    "image": {"url": pick_preview_image(entry)},
                }
            ],
            "attachments": [],
        }

    def notify(self, feed: Feed, entry: ContentEntry) -> None:
        """
        Send the embed, then pause ``throttle_seconds`` to stay under
        Discord's webhook rate limit.

        Raises:
            NotificationError: transport failure or a status other than 200/204.
        """
        payload = self.build_payload(feed, entry)
        try:
            resp = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            self.metrics.inc("notifications_total", labels={"result": "failed"})
            raise NotificationError(f"error sending webhook: {e}") from e

        if resp.status_code not in (200, 204):
            self.metrics.inc("notifications_total", labels={"result": "failed"})
            raise NotificationError(f"unexpected status code: {resp.status_code}")

        self.metrics.inc("notifications_total", labels={"result": "ok"})
        self.logger.info("Discord notification sent for '%s'", entry.title)
        if self.throttle_seconds:
            time.sleep(self.throttle_seconds)

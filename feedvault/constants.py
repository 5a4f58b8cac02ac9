"""
Centralised constants for FeedVault.

Extension sets, content-type tables, notification styling and retry
settings live here so they can be imported by any module without
circular dependencies.
"""

from pathlib import Path

# ── Version ──────────────────────────────────────────────────────
APP_NAME = "feedvault"
APP_VERSION = "1.0.0"
APP_USER_AGENT = f"FeedVault/{APP_VERSION}"

# ── Default paths ────────────────────────────────────────────────
DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_DB_PATH = Path("data") / "feedvault.db"
DEFAULT_ARCHIVE_DIR = Path("data") / "archive"

# ── Trigger ──────────────────────────────────────────────────────
NEW_ENTRIES_EVENT = "new_entries"
SIGNATURE_HEADER = "X-Miniflux-Signature"
EVENT_TYPE_HEADER = "X-Miniflux-Event-Type"

# ── Downloader ───────────────────────────────────────────────────
DEFAULT_DOWNLOADER = "gallery-dl"
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 3600

# ── Upload ───────────────────────────────────────────────────────
UPLOADABLE_EXTENSIONS = frozenset(
    {
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".webp",
        ".bmp",
        ".tiff",
        ".svg",
        ".mp4",
    }
)

CONTENT_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".mkv": "video/x-matroska",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".svg": "image/svg+xml",
}
FALLBACK_CONTENT_TYPE = "application/octet-stream"

API_KEY_HEADER = "x-api-key"
ALBUM_HEADER = "albumuuid"

# ── Notifications ────────────────────────────────────────────────
UNCATEGORIZED = "Uncategorized"
DEFAULT_NOTIFY_THROTTLE_SECONDS = 5.0

CATEGORY_COLORS: dict[str, int] = {
    "default": 0xFF69B4,
    "Patreon": 0xFF5900,
    "Fanbox": 0xFAF18A,
    "SubscribeStar": 0x009587,
    "Mastodon": 0x563ACC,
    "Bluesky": 0x1185FE,
    "X": 0x000000,
}

CATEGORY_ICONS: dict[str, str] = {
    "default": "https://i.imgur.com/Nyh7tRG.png",
    "Patreon": "https://i.imgur.com/07HA8CQ.png",
    "Fanbox": "https://i.imgur.com/uXT06Tq.png",
    "SubscribeStar": "https://i.imgur.com/San8fH3.png",
    "Bluesky": "https://i.imgur.com/1mcXqLF.png",
    "Mastodon": "https://i.imgur.com/tUeKKz2.png",
    "X": "https://i.imgur.com/wXxVrmo.png",
}

PLACEHOLDER_IMAGE_URL = "https://i.imgur.com/5zcBLRc.png"

IMAGE_URL_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg", ".tiff")

# ── Mark-as-read retry ───────────────────────────────────────────
MARK_READ_MAX_ATTEMPTS = 5
MARK_READ_BACKOFF_SECONDS = 2.0

# ── Worker pool ──────────────────────────────────────────────────
DEFAULT_WORKER_COUNT = 2
DEFAULT_QUEUE_SIZE = 100
DEFAULT_ENQUEUE_TIMEOUT_SECONDS = 5.0
DEFAULT_TASK_TIMEOUT_SECONDS = 2 * 3600

# ── HTTP ─────────────────────────────────────────────────────────
DEFAULT_HTTP_TIMEOUT_SECONDS = 30
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 600

# ── Logging ──────────────────────────────────────────────────────
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB per log file
LOG_BACKUP_COUNT = 5

"""
FeedVault - archives feed reader entries to a self-hosted asset host
"""

__version__ = "1.0.0"

from .app_state import AppState
from .services import ArchiveService, EntryProcessor
from .web_server import WebhookServer
from .workers import ArchiveQueue

__all__ = [
    "AppState",
    "ArchiveQueue",
    "ArchiveService",
    "EntryProcessor",
    "WebhookServer",
]

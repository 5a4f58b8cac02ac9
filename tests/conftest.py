"""
Test fixtures and configuration for pytest
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from feedvault.models import Category, ContentEntry, Feed


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Fresh metrics and error buffers for every test."""
    from feedvault.observability.errors import ErrorTracker
    from feedvault.observability.metrics import MetricsCollector

    MetricsCollector.reset()
    ErrorTracker.reset()
    yield
    MetricsCollector.reset()
    ErrorTracker.reset()


@pytest.fixture
def test_config(tmp_path):
    """Fully-resolved configuration pointing at temporary paths"""
    return {
        "server": {"host": "127.0.0.1", "port": "8099"},
        "database": {"path": str(tmp_path / "test.db")},
        "archive": {
            "base_directory": str(tmp_path / "archive"),
            "cleanup_after_upload": "false",
            "downloader": "gallery-dl",
            "download_timeout_seconds": "60",
        },
        "workers": {
            "count": "1",
            "queue_size": "4",
            "enqueue_timeout_seconds": "0.1",
            "task_timeout_seconds": "60",
        },
        "miniflux": {
            "api_url": "",
            "api_token": "",
            "webhook_secret": "",
            "timeout_seconds": "5",
        },
        "chibisafe": {
            "api_url": "",
            "api_key": "",
            "timeout_seconds": "5",
            "settings_ttl_seconds": "",
        },
        "discord": {"webhook_url": "", "throttle_seconds": "0"},
        "logging": {"debug": False},
    }


@pytest.fixture
def app_state(tmp_path):
    """Create an AppState with a temporary database"""
    from feedvault.app_state import AppState

    AppState.reset()
    state = AppState(db_path=str(tmp_path / "test.db"))
    yield state
    AppState.reset()


@pytest.fixture
def sample_feed():
    return Feed(
        id=7,
        site_url="https://www.patreon.com/jane",
        title="Jane on Patreon",
        feed_url="https://rss.example.com/jane.xml",
        category=Category(id=3, title="Patreon"),
    )


@pytest.fixture
def sample_entry():
    return ContentEntry(
        id=42,
        hash="abc123",
        title="New Set",
        url="https://www.patreon.com/posts/new-set-1",
        published_at="2024-03-15T10:00:00Z",
        content='<p>Preview <img src="https://cdn.example.com/p.png"></p>',
        author="Jane",
    )


@pytest.fixture
def published_at():
    return datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_response():
    """Factory for MagicMocks that quack like ``requests.Response``."""

    def _make(status_code=200, json_data=None, text="", content=b""):
        resp = MagicMock()
        resp.status_code = status_code
        resp.text = text
        resp.content = content
        if isinstance(json_data, Exception):
            resp.json.side_effect = json_data
        else:
            resp.json.return_value = json_data
        return resp

    return _make

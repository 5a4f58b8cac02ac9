"""Tests for the posts table (dedup store) on AppState."""

import sqlite3
from datetime import datetime, timezone

import pytest

from feedvault.models import ArchiveRecord


def _record(entry_hash="abc123", **overrides):
    fields = dict(
        site_url="https://www.patreon.com/jane",
        entry_id=42,
        hash=entry_hash,
        title="New Set",
        url="https://www.patreon.com/posts/1",
        published_at=datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc),
        content="<p>hi</p>",
        author="Jane",
        category_id=3,
        category_title="Patreon",
    )
    fields.update(overrides)
    return ArchiveRecord(**fields)


class TestPostRepository:
    def test_exists_after_create(self, app_state):
        assert not app_state.post_exists("abc123")
        row_id = app_state.create_post(_record())
        assert row_id > 0
        assert app_state.post_exists("abc123")

    def test_duplicate_hash_rejected(self, app_state):
        app_state.create_post(_record())
        with pytest.raises(sqlite3.IntegrityError):
            app_state.create_post(_record(title="Other"))
        assert app_state.count_posts() == 1

    def test_get_post_round_trips_timestamp(self, app_state):
        app_state.create_post(_record())
        post = app_state.get_post("abc123")
        assert post["author"] == "Jane"
        assert post["category_title"] == "Patreon"
        assert post["published_at"] == datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)

    def test_get_missing_post(self, app_state):
        assert app_state.get_post("missing") is None

    def test_recent_posts_newest_first(self, app_state):
        for n in range(3):
            app_state.create_post(_record(f"h{n}"))
        assert [p["hash"] for p in app_state.get_recent_posts(limit=2)] == ["h2", "h1"]

    def test_ping(self, app_state):
        assert app_state.ping() is True

    def test_singleton(self, app_state):
        from feedvault.app_state import AppState

        assert AppState() is app_state

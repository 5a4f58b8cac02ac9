"""Tests for EntryProcessor: dedup, persistence, scheduling and side calls."""

import sqlite3
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from feedvault.clients.miniflux_client import MinifluxError
from feedvault.models import ContentEntry
from feedvault.observability.metrics import MetricsCollector
from feedvault.services.entry_processor import EntryProcessor, parse_published_at
from feedvault.services.notifier import NotificationError
from feedvault.services.path_builder import PathBuilder


@pytest.fixture
def archive_queue():
    queue = MagicMock()
    queue.submit.return_value = True
    return queue


@pytest.fixture
def miniflux():
    return MagicMock()


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.is_configured.return_value = True
    return notifier


@pytest.fixture
def processor(app_state, archive_queue, miniflux, notifier):
    return EntryProcessor(
        app_state, archive_queue, miniflux=miniflux, notifier=notifier, task_timeout_seconds=60
    )


class TestParsePublishedAt:
    def test_zulu(self):
        assert parse_published_at("2024-03-15T10:00:00Z") == datetime(
            2024, 3, 15, 10, 0, tzinfo=timezone.utc
        )

    def test_offset(self):
        assert parse_published_at("2024-03-15T10:00:00+02:00").utcoffset().total_seconds() == 7200

    @pytest.mark.parametrize(
        "value, micro",
        [
            ("2024-03-15T10:00:00.123456789Z", 123456),
            ("2024-03-15T10:00:00.5Z", 500000),
            ("2024-03-15T10:00:00.1234Z", 123400),
        ],
    )
    def test_fraction_of_any_length(self, value, micro):
        parsed = parse_published_at(value)
        assert parsed == datetime(2024, 3, 15, 10, 0, 0, micro, tzinfo=timezone.utc)

    def test_nanosecond_entry_lands_in_its_own_month(self, tmp_path):
        parsed = parse_published_at("2024-03-15T10:00:00.123456789Z")
        path = PathBuilder(tmp_path).build_path("Jane", "Patreon", parsed, "abc123")
        assert path == tmp_path / "Jane - Patreon" / "2024" / "03 - March" / "abc123"

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-03-15T10:00:00"])
    def test_invalid(self, value):
        assert parse_published_at(value) is None


class TestProcess:
    def test_new_entry_full_flow(
        self, processor, app_state, archive_queue, miniflux, notifier, sample_feed, sample_entry
    ):
        result = processor.process(sample_feed, sample_entry)

        assert result.created
        assert result.archive_scheduled
        assert app_state.post_exists("abc123")
        miniflux.mark_entry_as_read.assert_called_once_with(42)
        notifier.notify.assert_called_once_with(sample_feed, sample_entry)

        task = archive_queue.submit.call_args.args[0]
        assert task.hash == "abc123"
        assert task.author == "Jane"
        assert task.category == "Patreon"
        assert task.title == "New Set"
        assert task.published_at == datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)
        assert task.timeout_seconds == 60

    def test_duplicate_is_noop(
        self, processor, archive_queue, miniflux, notifier, sample_feed, sample_entry
    ):
        processor.process(sample_feed, sample_entry)
        archive_queue.reset_mock()
        miniflux.reset_mock()
        notifier.reset_mock()

        result = processor.process(sample_feed, sample_entry)

        assert not result.created
        archive_queue.submit.assert_not_called()
        miniflux.mark_entry_as_read.assert_not_called()
        notifier.notify.assert_not_called()
        assert MetricsCollector().counter_value("entries_duplicate_total") == 1

    def test_bad_date_uses_now(self, processor, app_state, archive_queue, sample_feed):
        entry = ContentEntry(id=1, hash="h1", published_at="not a date", author="Jane")
        before = datetime.now(timezone.utc)

        processor.process(sample_feed, entry)

        task = archive_queue.submit.call_args.args[0]
        assert task.published_at >= before
        assert app_state.get_post("h1")["published_at"] >= before

    def test_side_call_failures_do_not_fail_entry(
        self, processor, miniflux, notifier, archive_queue, sample_feed, sample_entry
    ):
        miniflux.mark_entry_as_read.side_effect = MinifluxError("down")
        notifier.notify.side_effect = NotificationError("429")

        result = processor.process(sample_feed, sample_entry)

        assert result.created
        assert result.archive_scheduled
        assert [c.ok for c in result.side_calls] == [False, False]
        assert "down" in result.side_calls[0].error

    def test_unconfigured_notifier_is_skipped(
        self, processor, notifier, sample_feed, sample_entry
    ):
        notifier.is_configured.return_value = False
        processor.process(sample_feed, sample_entry)
        notifier.notify.assert_not_called()

    def test_queue_full_still_records(
        self, processor, app_state, archive_queue, sample_feed, sample_entry
    ):
        archive_queue.submit.return_value = False

        result = processor.process(sample_feed, sample_entry)

        assert result.created
        assert not result.archive_scheduled
        assert app_state.post_exists("abc123")

    def test_insert_failure_propagates(self, archive_queue, sample_feed, sample_entry):
        store = MagicMock()
        store.post_exists.return_value = False
        store.create_post.side_effect = sqlite3.OperationalError("disk I/O error")
        processor = EntryProcessor(store, archive_queue)

        with pytest.raises(sqlite3.OperationalError):
            processor.process(sample_feed, sample_entry)
        archive_queue.submit.assert_not_called()

    def test_insert_race_treated_as_duplicate(self, archive_queue, sample_feed, sample_entry):
        store = MagicMock()
        store.post_exists.return_value = False
        store.create_post.side_effect = sqlite3.IntegrityError("UNIQUE constraint failed")

        result = EntryProcessor(store, archive_queue).process(sample_feed, sample_entry)

        assert not result.created
        archive_queue.submit.assert_not_called()

    def test_concurrent_same_hash_records_once(
        self, processor, archive_queue, sample_feed, sample_entry
    ):
        results = []

        def worker():
            results.append(processor.process(sample_feed, sample_entry))

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(r.created for r in results) == 1
        assert archive_queue.submit.call_count == 1

    def test_without_archive_queue(self, app_state, sample_feed, sample_entry):
        result = EntryProcessor(app_state).process(sample_feed, sample_entry)
        assert result.created
        assert not result.archive_scheduled

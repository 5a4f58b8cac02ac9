"""
Tests for the observability package: structured logging, metrics and
error tracking.
"""

import json
import logging
import sys
import threading

from feedvault.observability.errors import ErrorTracker
from feedvault.observability.logging import (
    _JsonFormatter,
    clear_log_context,
    get_log_context,
    set_log_context,
    setup_structured_logger,
)
from feedvault.observability.metrics import MetricsCollector


class TestStructuredLogging:
    def test_setup_structured_logger_returns_logger(self):
        logger = setup_structured_logger("test_obs_log", "test_obs.log")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "test_obs_log"

    def test_json_formatter_output(self):
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="Post saved: %s",
            args=("abc123",),
            exc_info=None,
        )
        data = json.loads(_JsonFormatter().format(record))
        assert data["message"] == "Post saved: abc123"
        assert data["level"] == "INFO"
        assert data["service"] == "feedvault"
        assert "timestamp" in data

    def test_json_formatter_includes_exception_and_context(self):
        set_log_context(entry_hash="abc123")
        try:
            raise ValueError("test error")
        except ValueError:
            record = logging.LogRecord(
                name="test",
                level=logging.ERROR,
                pathname="test.py",
                lineno=1,
                msg="Something broke",
                args=None,
                exc_info=sys.exc_info(),
            )
        finally:
            data = json.loads(_JsonFormatter().format(record))
            clear_log_context()
        assert data["error_type"] == "ValueError"
        assert "exception" in data
        assert data["entry_hash"] == "abc123"

    def test_log_context_is_thread_local(self):
        clear_log_context()
        set_log_context(entry_hash="main")
        seen = {}

        def other():
            seen.update(get_log_context())

        t = threading.Thread(target=other)
        t.start()
        t.join()
        assert seen == {}
        assert get_log_context() == {"entry_hash": "main"}
        clear_log_context()


class TestMetricsCollector:
    def test_counter_with_labels(self):
        mc = MetricsCollector()
        mc.inc("archive_tasks_total", labels={"outcome": "uploaded"})
        mc.inc("archive_tasks_total", labels={"outcome": "uploaded"})
        mc.inc("archive_tasks_total", labels={"outcome": "failed"})
        assert mc.counter_value("archive_tasks_total", labels={"outcome": "uploaded"}) == 2
        assert mc.counter_value("archive_tasks_total", labels={"outcome": "failed"}) == 1
        assert mc.counter_value("archive_tasks_total") == 0

    def test_histogram_and_exposition(self):
        mc = MetricsCollector()
        mc.observe("archive_duration_ms", 2500)
        mc.gauge_set("archive_queue_depth", 3)
        text = mc.prometheus_exposition()
        assert 'archive_duration_ms_bucket{le="1000"} 0' in text
        assert 'archive_duration_ms_bucket{le="5000"} 1' in text
        assert 'archive_duration_ms_bucket{le="+Inf"} 1' in text
        assert "archive_duration_ms_count 1" in text
        assert "archive_queue_depth 3" in text

    def test_snapshot(self):
        mc = MetricsCollector()
        mc.observe("archive_duration_ms", 100)
        mc.observe("archive_duration_ms", 300)
        snap = mc.snapshot()
        assert snap["histograms"]["archive_duration_ms"] == {"count": 2, "sum": 400, "avg": 200}
        assert "uptime_seconds" in snap

    def test_singleton_and_reset(self):
        first = MetricsCollector()
        assert MetricsCollector() is first
        MetricsCollector.reset()
        assert MetricsCollector() is not first

    def test_thread_safety(self):
        mc = MetricsCollector()

        def bump():
            for _ in range(1000):
                mc.inc("entries_received_total")

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert mc.counter_value("entries_received_total") == 4000


class TestErrorTracker:
    def test_capture_and_recent(self):
        tracker = ErrorTracker()
        try:
            raise KeyError("missing")
        except KeyError:
            record = tracker.capture_exception(extra={"entry_hash": "abc123"})

        assert record.error_type == "KeyError"
        recent = tracker.recent_errors()
        assert recent[0]["context"]["entry_hash"] == "abc123"

    def test_nothing_to_capture(self):
        assert ErrorTracker().capture_exception() is None

    def test_summary_groups_by_location(self):
        tracker = ErrorTracker()
        for _ in range(3):
            try:
                raise RuntimeError("same place")
            except RuntimeError:
                tracker.capture_exception()

        summary = tracker.error_summary()
        assert summary["total_captured"] == 3
        assert summary["unique_errors"] == 1
        assert summary["top_errors"][0]["count"] == 3

    def test_explicit_exception(self):
        record = ErrorTracker().capture_exception(ValueError("no traceback"))
        assert record.fingerprint == "ValueError:unknown"

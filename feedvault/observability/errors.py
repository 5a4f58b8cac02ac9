"""
Centralised error tracking.

Captures exceptions at the pipeline's boundaries (the webhook route, the
per-entry loop, archive workers) and keeps them in a bounded in-memory
ring buffer that ``/api/errors/recent`` serves.  Each capture is also
written to ``logs/errors.log`` through the structured logger.
"""

import sys
import threading
import traceback
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .logging import get_log_context, setup_structured_logger

_MAX_ERROR_BUFFER = 200


@dataclass
class ErrorRecord:
    """A single captured error event."""

    timestamp: str
    error_type: str
    message: str
    traceback: str
    context: Dict[str, Any] = field(default_factory=dict)
    fingerprint: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "error_type": self.error_type,
            "message": self.message,
            "traceback": self.traceback,
            "context": self.context,
            "fingerprint": self.fingerprint,
        }


class ErrorTracker:
    """Singleton that captures, groups and stores errors.

    Usage::

        tracker = ErrorTracker()
        tracker.install_flask(app)

        try:
            archive_service.run(task)
        except Exception:
            tracker.capture_exception(extra={"entry_hash": task.hash})
    """

    _instance: Optional["ErrorTracker"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ErrorTracker":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._buffer: deque = deque(maxlen=_MAX_ERROR_BUFFER)
        self._counts: Dict[str, int] = {}
        self._counts_lock = threading.Lock()
        self._logger = setup_structured_logger("error_tracker", "errors.log")

    def install_flask(self, app: Flask) -> None:
        """Register handlers so unhandled route exceptions become JSON 500s."""

        @app.errorhandler(Exception)
        def _handle_exception(exc: Exception):
            if isinstance(exc, HTTPException):
                return exc
            self.capture_exception(exc=exc)
            return jsonify({"error": "Internal Server Error"}), 500

        @app.errorhandler(404)
        def _handle_404(exc):
            return {"error": "Not found"}, 404

    def capture_exception(
        self,
        exc: Optional[BaseException] = None,
        *,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[ErrorRecord]:
        """Capture an exception with its context.

        Args:
            exc: The exception. If ``None``, uses ``sys.exc_info()``.
            extra: Additional context to attach.

        Returns:
            The ``ErrorRecord``, or ``None`` if nothing to capture.
        """
        if exc is None:
            exc_info = sys.exc_info()
            if exc_info[0] is None:
                return None
            exc = exc_info[1]
        else:
            exc_info = (type(exc), exc, exc.__traceback__)

        tb = "".join(traceback.format_exception(*exc_info))
        fingerprint = f"{type(exc).__name__}:{_extract_location(exc_info)}"

        ctx: Dict[str, Any] = get_log_context()
        if extra:
            ctx.update(extra)

        try:
            ctx.setdefault("method", request.method)
            ctx.setdefault("path", request.path)
        except RuntimeError:
            pass  # outside request context

        record = ErrorRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            error_type=type(exc).__name__,
            message=str(exc),
            traceback=tb,
            context=ctx,
            fingerprint=fingerprint,
        )

        with self._counts_lock:
            self._buffer.append(record)
            self._counts[fingerprint] = self._counts.get(fingerprint, 0) + 1

        self._logger.error(
            "Captured %s: %s",
            record.error_type,
            record.message,
            extra={"error_type": record.error_type, "fingerprint": fingerprint},
        )
        return record

    def recent_errors(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent errors first."""
        with self._counts_lock:
            items = list(self._buffer)[-limit:]
        items.reverse()
        return [e.to_dict() for e in items]

    def error_summary(self) -> Dict[str, Any]:
        with self._counts_lock:
            counts = dict(self._counts)
        return {
            "total_captured": sum(counts.values()),
            "unique_errors": len(counts),
            "top_errors": sorted(
                [{"fingerprint": fp, "count": c} for fp, c in counts.items()],
                key=lambda x: x["count"],
                reverse=True,
            )[:20],
        }

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None


def _extract_location(exc_info) -> str:
    """file:line of the innermost traceback frame."""
    tb = exc_info[2]
    if tb is None:
        return "unknown"
    while tb.tb_next:
        tb = tb.tb_next
    return f"{tb.tb_frame.f_code.co_filename}:{tb.tb_lineno}"

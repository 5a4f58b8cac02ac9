"""
Observability package: structured logging, metrics and error tracking.

Provides:
- ``setup_structured_logger``: JSON-formatted logging with per-request context
- ``MetricsCollector``: in-process pipeline counters, gauges and histograms
- ``ErrorTracker``: captured exceptions for ``/api/errors/recent``
"""

from .errors import ErrorTracker
from .logging import clear_log_context, set_log_context, setup_structured_logger
from .metrics import MetricsCollector

__all__ = [
    "setup_structured_logger",
    "set_log_context",
    "clear_log_context",
    "MetricsCollector",
    "ErrorTracker",
]

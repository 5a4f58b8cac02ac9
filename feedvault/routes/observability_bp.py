"""
Observability routes: readiness, metrics, error dashboard.

Endpoints:
    GET /api/healthz        dedup store, archive directory and queue status
    GET /api/metrics        Prometheus exposition format
    GET /api/metrics/json   JSON metrics snapshot
    GET /api/errors/recent  Recent captured errors
    GET /api/errors/summary Error counts grouped by fingerprint
"""

import os
import sqlite3

from flask import Blueprint, Response, current_app, jsonify, request

from ..observability.errors import ErrorTracker
from ..observability.metrics import MetricsCollector

observability_bp = Blueprint("observability", __name__)


def _server():
    return current_app.config["server"]


@observability_bp.route("/api/healthz")
def healthz():
    """Readiness probe; 200 when healthy, 503 otherwise."""
    srv = _server()
    checks = {}
    healthy = True

    try:
        srv.app_state.ping()
        checks["database"] = {"status": "ok"}
    except sqlite3.Error as e:
        checks["database"] = {"status": "error", "message": str(e)}
        healthy = False

    archive_dir = srv.archive_dir
    if archive_dir.is_dir() and os.access(archive_dir, os.W_OK):
        checks["archive_dir"] = {"status": "ok", "path": str(archive_dir)}
    else:
        checks["archive_dir"] = {"status": "error", "path": str(archive_dir)}
        healthy = False

    queue = srv.archive_queue
    if queue is None:
        checks["archive_queue"] = {"status": "disabled"}
    else:
        checks["archive_queue"] = {
            "status": "ok" if queue.running() else "stopped",
            "pending": queue.pending(),
            "active": queue.active(),
        }

    payload = {
        "status": "healthy" if healthy else "degraded",
        "uptime_seconds": round(MetricsCollector().uptime_seconds(), 1),
        "checks": checks,
    }
    return jsonify(payload), 200 if healthy else 503


@observability_bp.route("/api/metrics")
def metrics_prometheus():
    mc = MetricsCollector()
    return Response(mc.prometheus_exposition(), mimetype="text/plain; charset=utf-8")


@observability_bp.route("/api/metrics/json")
def metrics_json():
    """JSON metrics snapshot with the live queue depth."""
    mc = MetricsCollector()
    queue = _server().archive_queue
    if queue is not None:
        mc.gauge_set("archive_queue_depth", queue.pending())
    return jsonify(mc.snapshot())


@observability_bp.route("/api/errors/recent")
def errors_recent():
    limit = request.args.get("limit", 50, type=int)
    return jsonify(ErrorTracker().recent_errors(limit))


@observability_bp.route("/api/errors/summary")
def errors_summary():
    return jsonify(ErrorTracker().error_summary())

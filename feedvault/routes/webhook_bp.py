"""Feed reader webhook and liveness routes."""

import hashlib
import hmac
import json
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from ..constants import (
    APP_NAME,
    APP_VERSION,
    EVENT_TYPE_HEADER,
    NEW_ENTRIES_EVENT,
    SIGNATURE_HEADER,
)
from ..models import InvalidPayloadError, WebhookPayload
from ..observability.errors import ErrorTracker
from ..observability.logging import clear_log_context, set_log_context
from ..observability.metrics import MetricsCollector

webhook_bp = Blueprint("webhook", __name__)


def _server():
    return current_app.config["server"]


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a hex HMAC-SHA256 of *body*, with or without a ``sha256=`` prefix."""
    if not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)


@webhook_bp.route("/webhook", methods=["POST"])
def receive_webhook():
    """Record and archive every entry in a ``new_entries`` event."""
    srv = _server()
    body = request.get_data()

    secret = srv.webhook_secret
    if secret and not verify_signature(body, request.headers.get(SIGNATURE_HEADER, ""), secret):
        srv.logger.warning("Invalid HMAC signature from %s", request.remote_addr)
        return jsonify({"error": "Unauthorized"}), 401

    event_type = request.headers.get(EVENT_TYPE_HEADER, "")
    if event_type != NEW_ENTRIES_EVENT:
        srv.logger.info("Ignored event type: %s", event_type)
        return jsonify({"status": "ignored"}), 200

    try:
        data = json.loads(body)
    except ValueError as e:
        srv.logger.warning("Error parsing JSON: %s", e)
        return jsonify({"error": "Invalid JSON"}), 400
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON"}), 400

    try:
        payload = WebhookPayload.from_dict(data)
    except InvalidPayloadError as e:
        srv.logger.warning("Malformed webhook payload: %s", e)
        return jsonify({"error": "Invalid JSON"}), 400
    if payload.event_type != NEW_ENTRIES_EVENT:
        srv.logger.info("Ignored event type in payload: %s", payload.event_type)
        return jsonify({"status": "ignored"}), 200

    processed = skipped = failed = 0
    for entry in payload.entries:
        set_log_context(entry_hash=entry.hash, feed_id=payload.feed.id)
        try:
            result = srv.entry_processor.process(payload.feed, entry)
        except Exception as e:
            failed += 1
            srv.logger.error("Error processing entry %s: %s", entry.hash, e)
            MetricsCollector().inc("entries_failed_total")
            ErrorTracker().capture_exception(extra={"entry_hash": entry.hash})
            continue
        finally:
            clear_log_context()
        if result.created:
            processed += 1
        else:
            skipped += 1

    srv.logger.info(
        "Webhook batch from feed %s: %d processed, %d skipped, %d failed",
        payload.feed.id,
        processed,
        skipped,
        failed,
    )
    return jsonify({"processed": processed, "skipped": skipped, "failed": failed}), 200


@webhook_bp.route("/health")
def health():
    """Liveness probe."""
    return jsonify(
        {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "service": APP_NAME,
            "version": APP_VERSION,
        }
    )

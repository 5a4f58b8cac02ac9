"""Recorded posts and archive task control."""

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

posts_bp = Blueprint("posts", __name__)


def _server():
    return current_app.config["server"]


def _serialize(post):
    if isinstance(post.get("published_at"), datetime):
        post["published_at"] = post["published_at"].isoformat()
    return post


@posts_bp.route("/api/posts")
def api_posts():
    """Most recently recorded posts, newest first."""
    app_state = _server().app_state
    limit = request.args.get("limit", 50, type=int)
    posts = [_serialize(p) for p in app_state.get_recent_posts(limit=max(1, min(limit, 500)))]
    return jsonify({"total": app_state.count_posts(), "posts": posts})


@posts_bp.route("/api/posts/<entry_hash>")
def api_post(entry_hash):
    post = _server().app_state.get_post(entry_hash)
    if not post:
        return jsonify({"error": "Post not found"}), 404
    return jsonify(_serialize(post))


@posts_bp.route("/api/archive/<entry_hash>", methods=["DELETE"])
def api_cancel_archive(entry_hash):
    """Cancel the queued or running archive task for an entry."""
    archive_queue = _server().archive_queue
    if archive_queue is None:
        return jsonify({"error": "Archiving is disabled"}), 400
    if archive_queue.cancel(entry_hash):
        return jsonify({"status": "cancelled"})
    return jsonify({"error": "No queued or running archive task for this entry"}), 404

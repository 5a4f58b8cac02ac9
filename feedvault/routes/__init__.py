"""
Flask Blueprints.

Each blueprint reaches the ``WebhookServer`` instance via
``current_app.config['server']``.
"""

from .observability_bp import observability_bp
from .posts_bp import posts_bp
from .webhook_bp import webhook_bp

__all__ = ["webhook_bp", "observability_bp", "posts_bp"]

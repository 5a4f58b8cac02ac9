"""
HTTP front end: receives feed reader webhooks and serves health, metrics
and error endpoints.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask

from .app_state import AppState
from .config import config_str, load_config
from .constants import DEFAULT_CONFIG_PATH
from .observability.errors import ErrorTracker
from .routes import observability_bp, posts_bp, webhook_bp
from .services.entry_processor import EntryProcessor
from .utils import setup_logger
from .workers.archive_worker import ArchiveQueue


class WebhookServer:
    """Flask application wrapper for the webhook pipeline"""

    def __init__(
        self,
        config: Dict[str, Any] = None,
        *,
        config_path: str = None,
        app_state: AppState = None,
        entry_processor: EntryProcessor = None,
        archive_queue: Optional[ArchiveQueue] = None,
    ):
        """Initialise the Flask web server.

        Args:
            config: Pre-loaded configuration dict (preferred).
            config_path: Path to the JSON config file, used when *config* is None.
            app_state: Dedup store shared with the entry processor.
            entry_processor: Handles each entry of a webhook batch.
            archive_queue: Worker pool, reported by ``/api/healthz``.
                ``None`` when workers are disabled.
        """
        self.config = (
            config if config is not None else load_config(config_path or DEFAULT_CONFIG_PATH)
        )
        debug_mode = self.config.get("logging", {}).get("debug", False)
        self.logger = setup_logger("web_server", "webhook.log", debug=debug_mode)
        self.app_state = app_state or AppState(config_str(self.config, "database", "path") or None)
        self.archive_queue = archive_queue
        self.entry_processor = entry_processor or EntryProcessor(self.app_state, archive_queue)

        self.webhook_secret = config_str(self.config, "miniflux", "webhook_secret")
        self.archive_dir = Path(config_str(self.config, "archive", "base_directory"))

        self.app = Flask(__name__)
        self._register_blueprints()
        ErrorTracker().install_flask(self.app)

        if not self.webhook_secret:
            self.logger.warning("No webhook secret configured; signatures will not be checked")
        self.logger.info("WebhookServer initialized")

    def _register_blueprints(self):
        """Register Blueprints and expose server on app."""
        self.app.config["server"] = self
        for bp in (webhook_bp, posts_bp, observability_bp):
            self.app.register_blueprint(bp)

    def run(self, host: str = None, port: int = None):
        """Start the web server (blocking)."""
        host = host or config_str(self.config, "server", "host") or "0.0.0.0"
        port = port or int(self.config["server"]["port"])

        self.logger.info("Starting web server on %s:%s", host, port)
        print("\n📥 FeedVault webhook receiver starting...")
        print(f"📁 Archive: {self.archive_dir}")
        print(f"🔗 Webhook: http://{host if host != '0.0.0.0' else 'localhost'}:{port}/webhook")
        print("\nPress Ctrl+C to stop\n")

        self.app.run(host=host, port=int(port), debug=False, threaded=True)

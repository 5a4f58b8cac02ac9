"""
Unified entry point for FeedVault.
Starts the archive worker pool and the webhook server in a single process.
"""

import argparse
import signal
import sqlite3
import sys
from pathlib import Path
from typing import Any, Dict, Tuple

from .app_state import AppState
from .clients import ChibisafeClient, MinifluxClient
from .config import (
    ConfigError,
    config_bool,
    config_float,
    config_int,
    config_str,
    load_config,
    validate_config,
)
from .constants import (
    APP_VERSION,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    DEFAULT_DOWNLOADER,
    DEFAULT_ENQUEUE_TIMEOUT_SECONDS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_NOTIFY_THROTTLE_SECONDS,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_TASK_TIMEOUT_SECONDS,
    DEFAULT_UPLOAD_TIMEOUT_SECONDS,
    DEFAULT_WORKER_COUNT,
)
from .services import (
    AlbumTagResolver,
    ArchiveService,
    CleanupManager,
    Downloader,
    EntryProcessor,
    Notifier,
    PathBuilder,
    RemoteSettingsCache,
    Uploader,
)
from .utils import setup_logger
from .web_server import WebhookServer
from .workers import ArchiveQueue


def build_pipeline(
    config: Dict[str, Any], app_state: AppState, logger
) -> Tuple[EntryProcessor, ArchiveQueue]:
    """Construct every service from *config* and wire them together."""
    archive_dir = Path(config_str(config, "archive", "base_directory"))

    chibisafe = ChibisafeClient(
        config_str(config, "chibisafe", "api_url"),
        config_str(config, "chibisafe", "api_key"),
        timeout=config_float(
            config, "chibisafe", "timeout_seconds", DEFAULT_UPLOAD_TIMEOUT_SECONDS
        ),
    )
    settings = RemoteSettingsCache(
        chibisafe, ttl_seconds=config_float(config, "chibisafe", "settings_ttl_seconds", None)
    )
    uploader = Uploader(chibisafe, AlbumTagResolver(chibisafe), settings)

    archive_service = ArchiveService(
        path_builder=PathBuilder(archive_dir),
        downloader=Downloader(
            config_str(config, "archive", "downloader") or DEFAULT_DOWNLOADER,
            timeout_seconds=config_float(
                config, "archive", "download_timeout_seconds", DEFAULT_DOWNLOAD_TIMEOUT_SECONDS
            ),
        ),
        uploader=uploader,
        cleanup_manager=CleanupManager(archive_dir),
        cleanup_after_upload=config_bool(config, "archive", "cleanup_after_upload"),
    )

    archive_queue = ArchiveQueue(
        archive_service,
        setup_logger("archive_worker", "archive.log"),
        worker_count=config_int(config, "workers", "count", DEFAULT_WORKER_COUNT),
        queue_size=config_int(config, "workers", "queue_size", DEFAULT_QUEUE_SIZE),
        enqueue_timeout=config_float(
            config, "workers", "enqueue_timeout_seconds", DEFAULT_ENQUEUE_TIMEOUT_SECONDS
        ),
    )

    miniflux = MinifluxClient(
        config_str(config, "miniflux", "api_url"),
        config_str(config, "miniflux", "api_token"),
        timeout=config_float(config, "miniflux", "timeout_seconds", DEFAULT_HTTP_TIMEOUT_SECONDS),
    )
    notifier = Notifier(
        config_str(config, "discord", "webhook_url"),
        throttle_seconds=config_float(
            config, "discord", "throttle_seconds", DEFAULT_NOTIFY_THROTTLE_SECONDS
        ),
    )
    if not notifier.is_configured():
        logger.info("Discord webhook not configured, notifications disabled")

    entry_processor = EntryProcessor(
        app_state,
        archive_queue,
        miniflux=miniflux,
        notifier=notifier,
        task_timeout_seconds=config_float(
            config, "workers", "task_timeout_seconds", DEFAULT_TASK_TIMEOUT_SECONDS
        ),
    )
    return entry_processor, archive_queue


def main():
    """Main entry point - starts all services"""
    parser = argparse.ArgumentParser(description="FeedVault webhook archiver")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config file")
    parser.add_argument("--host", help="Host address (overrides config)")
    parser.add_argument("--port", type=int, help="Port number (overrides config)")
    parser.add_argument(
        "--no-worker", action="store_true", help="Record entries without archiving them"
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"  Config error: {e}", file=sys.stderr)
        sys.exit(1)

    config_errors = validate_config(config)
    if config_errors:
        for err in config_errors:
            print(f"  Config error: {err}", file=sys.stderr)
        sys.exit(1)

    debug_mode = config_bool(config, "logging", "debug")
    logger = setup_logger("main", "main.log", debug=debug_mode)
    logger.info("=" * 60)
    logger.info("FeedVault %s starting", APP_VERSION)
    logger.info("=" * 60)

    archive_dir = Path(config_str(config, "archive", "base_directory"))
    try:
        app_state = AppState(config_str(config, "database", "path") or None)
        archive_dir.mkdir(parents=True, exist_ok=True)
    except (sqlite3.Error, OSError) as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    entry_processor, archive_queue = build_pipeline(config, app_state, logger)

    if args.no_worker:
        logger.info("Archive workers disabled; entries will be recorded only")
    else:
        archive_queue.start()

    server = WebhookServer(
        config=config,
        app_state=app_state,
        entry_processor=entry_processor,
        archive_queue=archive_queue,
    )

    def shutdown(signum, frame):
        logger.info("Shutdown signal received")
        print("\n Shutting down...")
        archive_queue.stop(timeout=5)
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    server.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()

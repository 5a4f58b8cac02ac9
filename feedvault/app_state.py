"""
Application state management using SQLite.
Thread-safe singleton shared between the webhook handler and archive workers.
"""
import sqlite3
import threading
from pathlib import Path

from .constants import DEFAULT_DB_PATH
from .repositories import PostRepositoryMixin
from .utils import setup_logger


class AppState(PostRepositoryMixin):
    """Thread-safe application state backed by SQLite"""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, db_path: str = None):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, db_path: str = None):
        if self._initialized:
            return

        if db_path is None:
            db_path = str(DEFAULT_DB_PATH)

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.logger = setup_logger('app_state', 'app_state.log')
        self._local = threading.local()
        self._init_db()
        self._initialized = True
        self.logger.info("AppState initialized with database: %s", db_path)

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection"""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            self._local.conn = sqlite3.connect(self.db_path)
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
        return self._local.conn

    def _init_db(self):
        """Initialize database schema"""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                site_url TEXT NOT NULL,
                entry_id INTEGER NOT NULL,
                hash TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                published_at TEXT NOT NULL,
                content TEXT,
                author TEXT,
                category_id INTEGER,
                category_title TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_posts_url ON posts(url);
            CREATE INDEX IF NOT EXISTS idx_posts_published_at ON posts(published_at);
            CREATE INDEX IF NOT EXISTS idx_posts_author ON posts(author);
        """)
        conn.commit()

    def ping(self) -> bool:
        """Cheap connectivity check for health probes"""
        self._get_conn().execute("SELECT 1")
        return True

    def close(self):
        """Close database connection for current thread"""
        if hasattr(self._local, 'conn') and self._local.conn:
            self._local.conn.close()
            self._local.conn = None

    @classmethod
    def reset(cls):
        """Reset singleton (for testing)"""
        with cls._lock:
            if cls._instance and hasattr(cls._instance, '_local'):
                cls._instance.close()
            cls._instance = None

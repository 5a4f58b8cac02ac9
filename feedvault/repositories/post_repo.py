"""Archived-post repository mixin (the dedup store)."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import ArchiveRecord


class PostRepositoryMixin:
    """Existence checks and inserts for the ``posts`` table.

    Rows are written once per hash and never updated; the UNIQUE
    constraint on ``hash`` rejects a second insert with
    ``sqlite3.IntegrityError``.
    """

    def post_exists(self, entry_hash: str) -> bool:
        """Return True if a post with this hash was already recorded."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT EXISTS(SELECT 1 FROM posts WHERE hash = ?)", (entry_hash,)
        ).fetchone()
        return bool(row[0])

    def create_post(self, record: ArchiveRecord) -> int:
        """Insert a post, returns the row id."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO posts (site_url, entry_id, hash, title, url, published_at,
                                   content, author, category_id, category_title)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    record.site_url,
                    record.entry_id,
                    record.hash,
                    record.title,
                    record.url,
                    record.published_at.isoformat(),
                    record.content,
                    record.author,
                    record.category_id,
                    record.category_title,
                ),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        self.logger.info("Post saved: %s - %s", record.title, record.hash)
        return cur.lastrowid

    def get_post(self, entry_hash: str) -> Optional[Dict[str, Any]]:
        """Get a single post by hash."""
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM posts WHERE hash = ?", (entry_hash,)).fetchone()
        return self._post_row_to_dict(row) if row else None

    def get_recent_posts(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recently recorded posts, newest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM posts ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._post_row_to_dict(row) for row in rows]

    def count_posts(self) -> int:
        conn = self._get_conn()
        return conn.execute("SELECT COUNT(*) FROM posts").fetchone()[0]

    @staticmethod
    def _post_row_to_dict(row) -> Dict[str, Any]:
        d = dict(row)
        try:
            d["published_at"] = datetime.fromisoformat(d["published_at"])
        except (TypeError, ValueError):
            pass
        return d

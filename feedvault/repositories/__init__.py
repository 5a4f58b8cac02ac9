"""
Repository mixins for AppState.

Each mixin encapsulates a logical domain and expects the host class to
provide:
    - ``self._get_conn()`` → ``sqlite3.Connection``
    - ``self.logger``       → ``logging.Logger``
"""

from .post_repo import PostRepositoryMixin

__all__ = ["PostRepositoryMixin"]

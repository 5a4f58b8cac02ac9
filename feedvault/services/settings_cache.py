"""
Cached Chibisafe upload-mode flag.

The asset host reports whether uploads go to network storage (signed URL)
or straight to its own disk.  The flag is fetched on first use and kept
under a read/write lock; readers never block each other.

Staleness policy: with ``ttl_seconds`` unset (the default) a fetched value
is kept for the life of the process.  With a TTL, a value older than the
TTL is re-fetched on the next read.  ``refresh()`` forces a re-fetch at
any time; a failed fetch never replaces or poisons the cached value.
"""

import time
from dataclasses import dataclass
from typing import Optional

from ..clients.chibisafe_client import ChibisafeClient, ChibisafeError
from ..utils import ReadWriteLock, setup_logger


@dataclass(frozen=True)
class RemoteSetting:
    use_network_storage: bool
    fetched_at: float


class RemoteSettingsCache:
    def __init__(self, client: ChibisafeClient, ttl_seconds: Optional[float] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or None
        self.logger = setup_logger("settings_cache", "chibisafe.log")
        self._lock = ReadWriteLock()
        self._value: Optional[RemoteSetting] = None

    @property
    def cached(self) -> Optional[RemoteSetting]:
        with self._lock.read():
            return self._value

    def get_use_network_storage(self) -> bool:
        """Return the cached flag, fetching it when missing or stale.

        Raises:
            ChibisafeError: the settings endpoint could not be read.
        """
        with self._lock.read():
            value = self._value
        if value is not None and not self._is_stale(value):
            return value.use_network_storage
        return self.refresh().use_network_storage

    def refresh(self) -> RemoteSetting:
        """Fetch the flag now and replace the cached value."""
        settings = self.client.get_settings()
        if not isinstance(settings, dict):
            raise ChibisafeError("settings response is not an object")
        raw = settings.get("useNetworkStorage")
        if raw is None:
            raw = False
        if not isinstance(raw, bool):
            raise ChibisafeError(f"settings useNetworkStorage is not a boolean: {raw!r}")
        value = RemoteSetting(use_network_storage=raw, fetched_at=time.monotonic())
        with self._lock.write():
            self._value = value
        self.logger.info("Chibisafe settings: useNetworkStorage=%s", raw)
        return value

    def invalidate(self) -> None:
        with self._lock.write():
            self._value = None

    def _is_stale(self, value: RemoteSetting) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.monotonic() - value.fetched_at >= self.ttl_seconds

"""
External service clients.

Each module encapsulates a single remote API:
- ``chibisafe_client`` – asset host: settings, albums, tags, uploads
- ``miniflux_client``  – feed reader: mark entries as read
"""

from .chibisafe_client import ChibisafeClient, ChibisafeError
from .miniflux_client import MinifluxClient, MinifluxError

__all__ = [
    "ChibisafeClient",
    "ChibisafeError",
    "MinifluxClient",
    "MinifluxError",
]

"""
Get-or-create resolution of Chibisafe albums (one per category) and tags
(one per author).

Every call searches the remote service again; nothing is memoized.  The
search/create pair is not atomic on the remote side, so concurrent
resolutions of the same name are serialized in-process with a keyed lock.
Other processes sharing the same Chibisafe instance can still race.
"""

from typing import Callable, List

from ..clients.chibisafe_client import ChibisafeClient
from ..models import RemoteItem
from ..utils import KeyedLock, setup_logger


class AlbumTagResolver:
    def __init__(self, client: ChibisafeClient):
        self.client = client
        self.logger = setup_logger("album_tag_resolver", "chibisafe.log")
        self._locks = KeyedLock()

    def resolve_album(self, name: str) -> str:
        """Return the uuid of the album called *name*, creating it if needed."""
        return self._get_or_create(
            "album", name, self.client.search_albums, self.client.create_album
        )

    def resolve_tag(self, name: str) -> str:
        """Return the uuid of the tag called *name*, creating it if needed."""
        return self._get_or_create("tag", name, self.client.search_tags, self.client.create_tag)

    def _get_or_create(
        self,
        kind: str,
        name: str,
        search: Callable[[str], List[RemoteItem]],
        create: Callable[[str], RemoteItem],
    ) -> str:
        with self._locks.hold((kind, name.casefold())):
            for item in search(name):
                if item.name.casefold() == name.casefold():
                    self.logger.info("Found existing %s: %s (%s)", kind, item.name, item.uuid)
                    return item.uuid

            self.logger.info("Creating new %s: %s", kind, name)
            return create(name).uuid

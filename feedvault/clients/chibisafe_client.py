"""Chibisafe (remote asset host) API client."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..constants import (
    ALBUM_HEADER,
    API_KEY_HEADER,
    DEFAULT_UPLOAD_TIMEOUT_SECONDS,
)
from ..models import RemoteItem
from ..utils import setup_logger

_OK = (200, 201)


class ChibisafeError(Exception):
    """Raised when a Chibisafe request fails or returns an unusable body."""


class ChibisafeClient:
    """Thin wrapper over the Chibisafe REST endpoints used by the pipeline.

    Every method performs exactly one HTTP round trip and raises
    ``ChibisafeError`` on transport errors, unexpected status codes or
    malformed JSON.  Orchestration (get-or-create, strategy choice, per-file
    error handling) lives in the service layer.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS,
    ) -> None:
        """Initialise the client.

        Args:
            api_url: Base URL of the Chibisafe instance. Trailing slashes
                are stripped.
            api_key: Static API key sent as ``x-api-key``.
            timeout: Per-request timeout in seconds.
        """
        self.api_url = (api_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.logger = setup_logger("chibisafe_client", "chibisafe.log")
        if not self.is_configured():
            self.logger.warning(
                "Chibisafe API URL or key not configured. Chibisafe uploads will be skipped."
            )

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    # ── Settings ─────────────────────────────────────────────────

    def get_settings(self) -> Dict[str, Any]:
        """``GET /api/settings``."""
        resp = self._request("get", "/api/settings", expected=(200,))
        return self._json(resp, "settings")

    # ── Albums / tags ────────────────────────────────────────────

    def search_albums(self, search: str) -> List[RemoteItem]:
        resp = self._request("get", "/api/albums", params={"search": search}, expected=(200,))
        return [_item(a) for a in self._json(resp, "albums").get("albums") or []]

    def create_album(self, name: str) -> RemoteItem:
        resp = self._request("post", "/api/album/create", json={"name": name})
        album = _item(self._json(resp, "create album").get("album") or {})
        if not album.uuid:
            raise ChibisafeError(f"create album returned no uuid for '{name}'")
        self.logger.info("Created album: %s (%s)", album.name, album.uuid)
        return album

    def search_tags(self, search: str) -> List[RemoteItem]:
        resp = self._request("get", "/api/tags", params={"search": search}, expected=(200,))
        return [_item(t) for t in self._json(resp, "tags").get("tags") or []]

    def create_tag(self, name: str) -> RemoteItem:
        resp = self._request("post", "/api/tag/create", json={"name": name})
        tag = _item(self._json(resp, "create tag").get("tag") or {})
        if not tag.uuid:
            raise ChibisafeError(f"create tag returned no uuid for '{name}'")
        self.logger.info("Created tag: %s (%s)", tag.name, tag.uuid)
        return tag

    def add_tag_to_file(self, file_uuid: str, tag_uuid: str) -> None:
        """``POST /api/file/{file}/tag/{tag}``."""
        self._request("post", f"/api/file/{file_uuid}/tag/{tag_uuid}")
        self.logger.info("Added tag %s to file %s", tag_uuid, file_uuid)

    # ── Uploads ──────────────────────────────────────────────────

    def request_signed_upload(self, name: str, size: int, content_type: str) -> Tuple[str, str]:
        """Ask for a pre-signed storage target.

        Returns:
            ``(signed_url, identifier)``
        """
        resp = self._request(
            "post",
            "/api/upload",
            json={"name": name, "size": size, "contentType": content_type},
        )
        body = self._json(resp, "signed url")
        url, identifier = body.get("url"), body.get("identifier")
        if not url or not identifier:
            raise ChibisafeError(f"signed url response missing url/identifier: {body}")
        self.logger.info("Got signed URL for %s: identifier=%s", name, identifier)
        return url, identifier

    def put_signed(self, signed_url: str, file_path: Path, content_type: str) -> None:
        """PUT raw file bytes to a pre-signed storage URL."""
        size = file_path.stat().st_size
        try:
            with open(file_path, "rb") as fh:
                resp = requests.put(
                    signed_url,
                    data=fh,
                    headers={"Content-Type": content_type, "Content-Length": str(size)},
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            raise ChibisafeError(f"signed upload failed: {e}") from e
        if resp.status_code not in _OK:
            raise ChibisafeError(f"signed upload failed: {resp.status_code} - {resp.text}")

    def process_upload(
        self, identifier: str, name: str, content_type: str, album_uuid: Optional[str]
    ) -> Dict[str, Any]:
        """Finalise a signed upload. Returns the raw JSON body."""
        headers = {ALBUM_HEADER: album_uuid} if album_uuid else {}
        resp = self._request(
            "post",
            "/api/upload/process",
            json={"identifier": identifier, "name": name, "type": content_type},
            headers=headers,
        )
        self.logger.debug("Process upload response: %s", resp.text)
        return self._json(resp, "process upload")

    def upload_multipart(
        self,
        file_path: Path,
        name: str,
        content_type: str,
        album_uuid: Optional[str],
    ) -> Dict[str, Any]:
        """Single-part multipart ``POST /api/upload``. Returns the raw JSON body."""
        part_headers = {}
        if Path(name).suffix.lower() == ".mp4":
            part_headers["Content-Transfer-Encoding"] = "binary"
        headers = {ALBUM_HEADER: album_uuid} if album_uuid else {}
        with open(file_path, "rb") as fh:
            resp = self._request(
                "post",
                "/api/upload",
                files={"files": (name, fh, content_type, part_headers)},
                headers=headers,
            )
        return self._json(resp, "upload")

    # ── Private helpers ──────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        expected: Tuple[int, ...] = _OK,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        all_headers = {API_KEY_HEADER: self.api_key}
        if headers:
            all_headers.update(headers)
        func = getattr(requests, method)
        try:
            resp = func(self.api_url + path, headers=all_headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ChibisafeError(f"{method.upper()} {path} failed: {e}") from e
        if resp.status_code not in expected:
            raise ChibisafeError(
                f"{method.upper()} {path} failed: {resp.status_code} - {resp.text}"
            )
        return resp

    @staticmethod
    def _json(resp: requests.Response, what: str) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as e:
            raise ChibisafeError(f"failed to decode {what} response: {e}") from e
        if not isinstance(body, dict):
            raise ChibisafeError(f"unexpected {what} response: {body!r}")
        return body


def _item(data: Dict[str, Any]) -> RemoteItem:
    return RemoteItem(uuid=data.get("uuid") or "", name=data.get("name") or "")

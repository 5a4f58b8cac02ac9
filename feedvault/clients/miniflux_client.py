"""Miniflux (upstream feed reader) API client."""

import time

import requests

from ..constants import (
    APP_USER_AGENT,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    MARK_READ_BACKOFF_SECONDS,
    MARK_READ_MAX_ATTEMPTS,
)
from ..utils import setup_logger


class MinifluxError(Exception):
    """Raised when Miniflux rejects a request or cannot be reached."""


class MinifluxClient:
    """Marks entries as read once they have been recorded."""

    def __init__(
        self,
        api_url: str,
        api_token: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_attempts: int = MARK_READ_MAX_ATTEMPTS,
        backoff_seconds: float = MARK_READ_BACKOFF_SECONDS,
    ) -> None:
        self.api_url = (api_url or "").rstrip("/")
        self.api_token = api_token or ""
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.logger = setup_logger("miniflux_client", "miniflux.log")
        if not self.is_configured():
            self.logger.warning(
                "Miniflux API URL or token not configured. Entry marking will be skipped."
            )

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_token)

    def mark_entry_as_read(self, entry_id: int) -> None:
        """
        ``PUT /entries`` with status ``read`` for a single entry.

        Transport failures are retried with a linearly growing pause
        (``attempt * backoff_seconds``).  A response other than 204 is not
        retried.

        Raises:
            MinifluxError: after the last failed attempt or on a non-204 status.
        """
        if not self.is_configured():
            self.logger.info(
                "Miniflux client not configured, skipping mark as read for entry %s", entry_id
            )
            return

        url = f"{self.api_url}/entries"
        body = {"entry_ids": [int(entry_id)], "status": "read"}
        headers = {
            "X-Auth-Token": self.api_token,
            "User-Agent": APP_USER_AGENT,
            "Accept": "application/json",
        }

        resp = None
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = requests.put(url, json=body, headers=headers, timeout=self.timeout)
                break
            except requests.RequestException as e:
                last_error = e
                self.logger.warning("Attempt %d failed for entry %s: %s", attempt, entry_id, e)
                if attempt < self.max_attempts:
                    time.sleep(attempt * self.backoff_seconds)

        if resp is None:
            raise MinifluxError(
                f"failed to send request after {self.max_attempts} attempts: {last_error}"
            )

        if resp.status_code != 204:
            raise MinifluxError(f"unexpected status code {resp.status_code}: {resp.text}")

        self.logger.info("Entry %s marked as read in Miniflux", entry_id)

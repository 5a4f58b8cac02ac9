"""
Directory upload to Chibisafe.

Two strategies share one contract, ``upload(path, name, album_uuid) ->
file uuid``:

- ``SignedUrlUpload``: used when the host stores files on network
  storage: request a signed target, PUT the bytes there, then ask the host
  to process the upload.
- ``DirectUpload``: a single multipart POST to the host.

The strategy is chosen once per ``upload_directory`` call from
``RemoteSettingsCache``; if the settings cannot be read the call falls
back to ``DirectUpload`` and the next call asks again.
"""

import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..clients.chibisafe_client import ChibisafeClient, ChibisafeError
from ..constants import CONTENT_TYPES, FALLBACK_CONTENT_TYPE, UPLOADABLE_EXTENSIONS
from ..models import UploadedFile, UploadReport
from ..observability.metrics import MetricsCollector
from ..utils import best_effort, format_size, sanitize_for_path, setup_logger
from .album_tag_resolver import AlbumTagResolver
from .settings_cache import RemoteSettingsCache


class UploadError(Exception):
    """A directory upload could not run at all."""


def resolve_content_type(filename: str) -> str:
    """Known extension table first, then the ``mimetypes`` registry."""
    ext = Path(filename).suffix.lower()
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(f"file{ext}")
    return guessed or FALLBACK_CONTENT_TYPE


def is_uploadable(path: Path) -> bool:
    return path.suffix.lower() in UPLOADABLE_EXTENSIONS


def derive_filenames(title: str, files: List[Path]) -> List[str]:
    """Remote names for *files*: ``{title}{ext}`` or ``{title}-{n}{ext}``."""
    stem = sanitize_for_path(title)
    if len(files) == 1:
        return [f"{stem}{files[0].suffix}"]
    return [f"{stem}-{n}{path.suffix}" for n, path in enumerate(files, start=1)]


def extract_file_uuid(body: Dict[str, Any]) -> Optional[str]:
    """Find the file uuid in a process-upload response.

    Accepted shapes, in order: ``{"file": {"uuid"}}``, ``{"uuid"}``,
    ``{"files": [{"uuid"}, ...]}``.
    """
    file_obj = body.get("file")
    if isinstance(file_obj, dict) and isinstance(file_obj.get("uuid"), str) and file_obj["uuid"]:
        return file_obj["uuid"]
    if isinstance(body.get("uuid"), str) and body["uuid"]:
        return body["uuid"]
    files = body.get("files")
    if isinstance(files, list) and files and isinstance(files[0], dict):
        uuid = files[0].get("uuid")
        if isinstance(uuid, str) and uuid:
            return uuid
    return None


class UploadStrategy:
    """Common base for the two upload variants."""

    name = "base"

    def __init__(self, client: ChibisafeClient):
        self.client = client
        self.logger = setup_logger("uploader", "chibisafe.log")

    def upload(self, path: Path, filename: str, album_uuid: Optional[str]) -> str:
        raise NotImplementedError


class SignedUrlUpload(UploadStrategy):
    name = "signed_url"

    def upload(self, path: Path, filename: str, album_uuid: Optional[str]) -> str:
        size = path.stat().st_size
        content_type = resolve_content_type(filename)
        self.logger.info(
            "Starting signed-URL upload for %s (%s, %s)", filename, format_size(size), content_type
        )

        signed_url, identifier = self.client.request_signed_upload(filename, size, content_type)
        self.client.put_signed(signed_url, path, content_type)
        body = self.client.process_upload(identifier, filename, content_type, album_uuid)

        file_uuid = extract_file_uuid(body)
        if not file_uuid:
            self.logger.warning("Could not extract file UUID from response: %s", body)
            raise ChibisafeError("file UUID not found in response")
        return file_uuid


class DirectUpload(UploadStrategy):
    name = "direct"

    def upload(self, path: Path, filename: str, album_uuid: Optional[str]) -> str:
        content_type = resolve_content_type(filename)
        self.logger.info(
            "Starting direct upload for %s (%s, %s)",
            filename,
            format_size(path.stat().st_size),
            content_type,
        )
        body = self.client.upload_multipart(path, filename, content_type, album_uuid)
        file_uuid = body.get("uuid")
        if not isinstance(file_uuid, str) or not file_uuid:
            raise ChibisafeError(f"upload response has no uuid: {body}")
        self.logger.debug("Public URL for %s: %s", filename, body.get("publicUrl"))
        return file_uuid


class Uploader:
    """Uploads an archive directory into the album for its category."""

    def __init__(
        self,
        client: ChibisafeClient,
        resolver: AlbumTagResolver,
        settings: RemoteSettingsCache,
    ):
        self.client = client
        self.resolver = resolver
        self.settings = settings
        self.logger = setup_logger("uploader", "chibisafe.log")
        self.metrics = MetricsCollector()

    def is_configured(self) -> bool:
        return self.client.is_configured()

    def select_strategy(self) -> UploadStrategy:
        try:
            use_network_storage = self.settings.get_use_network_storage()
        except ChibisafeError as e:
            self.logger.warning(
                "Could not get Chibisafe settings, falling back to direct upload: %s", e
            )
            return DirectUpload(self.client)
        if use_network_storage:
            return SignedUrlUpload(self.client)
        return DirectUpload(self.client)

    def upload_directory(
        self, directory: Path, category: str, author: str, title: str
    ) -> UploadReport:
        """
        Upload every eligible file in *directory*.

        Returns:
            UploadReport describing uploaded, failed and skipped files.

        Raises:
            UploadError: the album could not be resolved or the directory
                could not be listed.
        """
        report = UploadReport()
        if not self.is_configured():
            self.logger.info("Chibisafe not configured, skipping upload for %s", directory)
            return report

        try:
            album_uuid = self.resolver.resolve_album(category)
        except ChibisafeError as e:
            raise UploadError(f"failed to get/create album '{category}': {e}") from e

        tag_uuid = None
        try:
            tag_uuid = self.resolver.resolve_tag(author)
        except ChibisafeError as e:
            self.logger.warning("Failed to get/create tag for %s: %s", author, e)

        try:
            entries = sorted(Path(directory).iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise UploadError(f"failed to list {directory}: {e}") from e

        eligible: List[Path] = []
        for path in entries:
            if not path.is_file():
                continue
            if not is_uploadable(path):
                self.logger.info("Skipping non-supported file: %s", path.name)
                report.skipped.append(path.name)
                continue
            eligible.append(path)

        if not eligible:
            return report

        strategy = self.select_strategy()
        report.strategy = strategy.name
        self.logger.info("Uploading %d file(s) using %s strategy", len(eligible), strategy.name)

        for path, filename in zip(eligible, derive_filenames(title, eligible)):
            self.logger.info("Uploading file: %s as %s", path.name, filename)
            try:
                file_uuid = strategy.upload(path, filename, album_uuid)
            except (ChibisafeError, OSError) as e:
                self.logger.error("Error uploading file %s: %s", filename, e)
                report.failed.append(filename)
                self.metrics.inc(
                    "uploads_total", labels={"strategy": strategy.name, "result": "failed"}
                )
                continue

            self.metrics.inc("uploads_total", labels={"strategy": strategy.name, "result": "ok"})
            uploaded = UploadedFile(local_path=path, name=filename, uuid=file_uuid)
            report.uploaded.append(uploaded)

            if tag_uuid:
                best_effort(
                    f"add tag to {filename}",
                    self.client.add_tag_to_file,
                    uploaded.uuid,
                    tag_uuid,
                    logger=self.logger,
                )

        return report

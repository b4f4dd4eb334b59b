"""
Blob storage for project documents and MRV data files.

Two backends:
- local: files under STORAGE_ROOT/<bucket>/<path>
- http: a Supabase-compatible storage REST endpoint (POST /object/<bucket>/<path>)
"""

import asyncio
import logging
import re
from pathlib import Path, PurePosixPath
from typing import NamedTuple, Optional

import httpx

from bluecarbon.core.config import get_settings
from bluecarbon.core.exceptions import TransientIOError, ValidationError
from bluecarbon.utils.time import timestamp_millis

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FilePayload(NamedTuple):
    """An uploaded file read into memory."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


def safe_filename(filename: Optional[str]) -> str:
    """Strip directories and unusual characters from an uploaded file name."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "upload"


def file_extension(filename: Optional[str]) -> str:
    """Lowercase extension without the dot ('' when there is none)."""
    name = safe_filename(filename)
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def build_object_path(user_id: str, filename: Optional[str]) -> str:
    """Caller-scoped object path: <user_id>/<millis>_<safe-name>."""
    return f"{safe_filename(user_id)}/{timestamp_millis()}_{safe_filename(filename)}"


def check_upload_size(size: int, filename: Optional[str]) -> None:
    """Reject empty or oversized uploads before they reach storage."""
    limit = get_settings().max_upload_bytes
    if size == 0:
        raise ValidationError(f"{filename or 'File'} is empty", context={"file": filename})
    if size > limit:
        raise ValidationError(
            f"{filename or 'File'} exceeds the {limit // (1024 * 1024)} MB upload limit",
            context={"file": filename, "size": size, "limit": limit},
        )


class BlobStorage:
    """Interface for blob storage backends."""

    async def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store `data` and return the stored path reference."""
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    """Filesystem-backed storage."""

    def __init__(self, root: str):
        self.root = Path(root)

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = self.root / bucket / path
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            logger.error("Local upload to %s/%s failed: %s", bucket, path, e)
            raise TransientIOError(f"Failed to store {path}", context={"bucket": bucket, "path": path})
        return f"{bucket}/{path}"


class HttpBlobStorage(BlobStorage):
    """Remote storage service reached over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        headers = {"Content-Type": content_type or "application/octet-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key

        url = f"{self.base_url}/object/{bucket}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, content=data, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Remote upload to %s/%s failed: %s", bucket, path, e)
            raise TransientIOError(f"Failed to store {path}", context={"bucket": bucket, "path": path})

        try:
            body = response.json()
        except ValueError:
            body = {}
        return body.get("Key") or f"{bucket}/{path}"


def get_storage() -> BlobStorage:
    """Dependency returning the configured storage backend."""
    settings = get_settings()
    if settings.storage_backend == "http":
        if not settings.storage_url:
            raise RuntimeError("STORAGE_URL must be set for the http storage backend")
        return HttpBlobStorage(settings.storage_url, settings.storage_api_key)
    return LocalBlobStorage(settings.storage_root)

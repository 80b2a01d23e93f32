"""
Object storage for attendance photos (S3-compatible API via boto3).
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
import uuid
from typing import Iterable, Optional, Protocol
from urllib.parse import unquote, urlparse

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings, get_settings

log = structlog.get_logger()

DELETE_CHUNK_SIZE = 100

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)
_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class UploadError(Exception):
    """The image could not be stored."""


class InvalidImageError(UploadError):
    """The payload is not a decodable image."""


class ObjectStorage(Protocol):
    async def upload(self, image_base64: str, folder: str) -> str: ...

    async def delete_batch(self, resource_ids: list[str]) -> None: ...

    def resource_id(self, url: str) -> Optional[str]: ...


def sanitize_folder(value: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9\-_]+", "-", str(value or "user").lower())


def decode_image(image_base64: str) -> tuple[bytes, str]:
    """Decode a raw base64 payload or a ``data:`` URL into (bytes, mime type)."""
    mime = "image/jpeg"
    payload = image_base64.strip()
    match = _DATA_URL.match(payload)
    if match:
        mime = match.group("mime").lower()
        payload = match.group("data")
    if not mime.startswith("image/"):
        raise InvalidImageError(f"Unsupported content type: {mime}")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image is not valid base64") from exc
    if not data:
        raise InvalidImageError("Image is empty")
    return data, mime


def extract_resource_id(url: str, *, base_url: str = "", bucket: str = "") -> Optional[str]:
    """Recover the object key from a stored image address.

    Handles the configured public base URL, virtual-hosted style and
    path-style bucket URLs. Returns None when no key can be found.
    """
    if not url:
        return None
    clean = url.split("?", 1)[0].split("#", 1)[0]
    base = base_url.rstrip("/")
    if base and clean.startswith(base + "/"):
        key = clean[len(base) + 1:]
    else:
        path = urlparse(clean).path.lstrip("/")
        if bucket and path.startswith(bucket + "/"):
            path = path[len(bucket) + 1:]
        key = path
    key = unquote(key)
    return key or None


def chunked(items: list[str], size: int = DELETE_CHUNK_SIZE) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def purge_images(
    storage: ObjectStorage,
    urls: Iterable[Optional[str]],
    *,
    chunk_size: int = DELETE_CHUNK_SIZE,
) -> int:
    """Delete the objects behind ``urls`` in batches. Best effort.

    A failing batch is logged and skipped; callers proceed with their record
    deletes regardless. Returns the number of batches issued.
    """
    ids = [rid for rid in (storage.resource_id(u) for u in urls if u) if rid]
    batches = 0
    for chunk in chunked(ids, chunk_size):
        batches += 1
        try:
            await storage.delete_batch(chunk)
        except Exception as exc:  # remote cleanup never blocks record deletion
            log.warning("media.batch_delete_failed", size=len(chunk), error=str(exc))
    if ids:
        log.info("media.purged", objects=len(ids), batches=batches)
    return batches


class S3ObjectStorage:
    def __init__(
        self,
        bucket: str,
        *,
        endpoint_url: str = "",
        region: str = "us-east-1",
        access_key_id: str = "",
        secret_access_key: str = "",
        public_base_url: str = "",
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url.rstrip("/")
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            region_name=region,
            config=Config(signature_version="s3v4"),
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def resource_id(self, url: str) -> Optional[str]:
        return extract_resource_id(url, base_url=self.public_base_url, bucket=self.bucket)

    async def upload(self, image_base64: str, folder: str) -> str:
        data, mime = decode_image(image_base64)
        key = f"{folder.strip('/')}/{uuid.uuid4().hex}{_EXTENSIONS.get(mime, '')}"
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=mime,
            )
        except (ClientError, BotoCoreError) as exc:
            log.error("media.upload_failed", key=key, error=str(exc))
            raise UploadError(str(exc)) from exc
        log.info("media.uploaded", key=key, size=len(data))
        return self.public_url(key)

    async def delete_batch(self, resource_ids: list[str]) -> None:
        if not resource_ids:
            return
        await asyncio.to_thread(
            self._client.delete_objects,
            Bucket=self.bucket,
            Delete={"Objects": [{"Key": k} for k in resource_ids], "Quiet": True},
        )


_storage: Optional[S3ObjectStorage] = None


def build_storage(settings: Settings) -> S3ObjectStorage:
    return S3ObjectStorage(
        settings.storage_bucket,
        endpoint_url=settings.storage_endpoint_url,
        region=settings.storage_region,
        access_key_id=settings.storage_access_key_id,
        secret_access_key=settings.storage_secret_access_key,
        public_base_url=settings.storage_public_base_url,
    )


def get_storage() -> ObjectStorage:
    """FastAPI dependency: the process-wide object storage client."""
    global _storage
    if _storage is None:
        _storage = build_storage(get_settings())
    return _storage

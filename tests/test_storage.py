"""
Tests for object storage helpers.

Covers:
- Image payload decoding (raw base64 and data URLs)
- Resource id recovery from stored addresses
- Batched, best-effort purge
- S3 upload error translation (boto3 client mocked)
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.core.storage import (
    InvalidImageError,
    S3ObjectStorage,
    UploadError,
    decode_image,
    extract_resource_id,
    purge_images,
    sanitize_folder,
)

PNG = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


class _Storage:
    def __init__(self, fail_on=()):
        self.batches = []
        self.fail_on = set(fail_on)

    async def delete_batch(self, resource_ids):
        self.batches.append(list(resource_ids))
        if len(self.batches) in self.fail_on:
            raise RuntimeError("boom")

    def resource_id(self, url):
        return extract_resource_id(url, base_url="https://cdn.example.com")


# ---------------------------------------------------------------------------
# Unit Tests: decoding
# ---------------------------------------------------------------------------

class TestDecodeImage:
    def test_raw_base64_defaults_to_jpeg(self):
        data, mime = decode_image(PNG)
        assert data.startswith(b"\x89PNG")
        assert mime == "image/jpeg"

    def test_data_url(self):
        _, mime = decode_image(f"data:image/png;base64,{PNG}")
        assert mime == "image/png"

    def test_non_image_rejected(self):
        with pytest.raises(InvalidImageError):
            decode_image(f"data:text/plain;base64,{PNG}")

    def test_garbage_rejected(self):
        with pytest.raises(InvalidImageError):
            decode_image("%%%")

    def test_sanitize_folder(self):
        assert sanitize_folder("Mark.O'Neil@Example.com") == "mark-o-neil-example-com"
        assert sanitize_folder(None) == "user"


class TestResourceId:
    def test_public_base_url(self):
        assert extract_resource_id(
            "https://cdn.example.com/attendance/a/1.jpg?v=2", base_url="https://cdn.example.com/"
        ) == "attendance/a/1.jpg"

    def test_path_style_bucket(self):
        assert extract_resource_id(
            "https://s3.example.com/media/attendance/a%20b/1.jpg", bucket="media"
        ) == "attendance/a b/1.jpg"

    def test_virtual_hosted(self):
        assert extract_resource_id(
            "https://media.s3.us-east-1.amazonaws.com/attendance/a/1.jpg"
        ) == "attendance/a/1.jpg"

    def test_empty(self):
        assert extract_resource_id("") is None
        assert extract_resource_id("https://cdn.example.com/", base_url="https://cdn.example.com") is None


# ---------------------------------------------------------------------------
# Unit Tests: purge
# ---------------------------------------------------------------------------

class TestPurge:
    @pytest.mark.asyncio
    async def test_chunks_of_one_hundred(self):
        storage = _Storage()
        urls = [f"https://cdn.example.com/attendance/u/{i}.jpg" for i in range(250)]
        assert await purge_images(storage, urls) == 3
        assert [len(b) for b in storage.batches] == [100, 100, 50]

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_stop_the_rest(self):
        storage = _Storage(fail_on={1})
        urls = [f"https://cdn.example.com/attendance/u/{i}.jpg" for i in range(150)]
        assert await purge_images(storage, urls) == 2
        assert len(storage.batches) == 2

    @pytest.mark.asyncio
    async def test_nothing_to_purge(self):
        storage = _Storage()
        assert await purge_images(storage, [None, ""]) == 0
        assert storage.batches == []


class TestS3Upload:
    @pytest.mark.asyncio
    async def test_client_error_becomes_upload_error(self):
        storage = S3ObjectStorage("media", public_base_url="https://cdn.example.com")
        storage._client = MagicMock()
        storage._client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with pytest.raises(UploadError):
            await storage.upload(PNG, "attendance/mark")

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self):
        storage = S3ObjectStorage("media", public_base_url="https://cdn.example.com")
        storage._client = MagicMock()
        url = await storage.upload(f"data:image/png;base64,{PNG}", "attendance/mark")
        assert url.startswith("https://cdn.example.com/attendance/mark/")
        assert url.endswith(".png")
        kwargs = storage._client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "media"
        assert kwargs["ContentType"] == "image/png"

"""
Attachment provisioning for chat photos.

Uploading is a two-phase ensure: make sure the bucket exists (creating it
on a failed probe and tolerating a failed create, since a concurrent
creator may have won), then compress, upload under a fresh key and issue
a signed URL valid for a year. Callers only ever see that URL.
"""

import asyncio
import io
import json
import logging
import mimetypes
import os
import uuid
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from PIL import Image, UnidentifiedImageError

from fleetops.app.core.exceptions import (
    EncodingTooLargeError, InvalidAttachmentError, ResourceNotFoundError, StoreError,
)
from fleetops.app.core.jwt import create_blob_token
from fleetops.app.schemas.chat import Attachment

logger = logging.getLogger("fleetops.attachments")

# Quality is stepped in integer tenths so 0.7 - 0.1 * n lands exactly on each step
QUALITY_START_TENTHS = 7
QUALITY_FLOOR_TENTHS = 1

_BUCKET_CONFIG = ".bucket.json"


class BucketNotFound(StoreError):
    def __init__(self, bucket: str):
        super().__init__(f"Bucket {bucket} does not exist", details={"bucket": bucket})


class BlobStore(Protocol):
    async def get_bucket(self, name: str) -> dict: ...

    async def create_bucket(self, name: str, file_size_limit: int, allowed_mime_types: List[str]) -> None: ...

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> str: ...

    async def signed_url(self, bucket: str, key: str, ttl_seconds: int) -> str: ...

    async def get(self, bucket: str, key: str) -> Tuple[bytes, str]: ...


class ImageEncoder(Protocol):
    def encode(self, image: bytes, quality: float) -> bytes: ...


class PillowJpegEncoder:
    """Re-encodes any Pillow-readable image as JPEG at the given quality (0-1]."""

    def encode(self, image: bytes, quality: float) -> bytes:
        try:
            picture = Image.open(io.BytesIO(image)).convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidAttachmentError("Attachment is not a readable image") from e
        buffer = io.BytesIO()
        picture.save(buffer, format="JPEG", quality=max(1, int(round(quality * 100))), optimize=True)
        return buffer.getvalue()


class LocalBlobStore:
    """
    Filesystem-backed blob store.

    Buckets are directories under ``root``; each keeps its size cap and
    MIME allow-list in a config file that ``put`` enforces. Signed URLs
    point at the attachment download endpoint and carry a JWT grant.
    """

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _bucket_dir(self, name: str) -> Path:
        return self.root / name

    def _object_path(self, bucket: str, key: str) -> Path:
        path = (self._bucket_dir(bucket) / key).resolve()
        if self._bucket_dir(bucket).resolve() not in path.parents:
            raise InvalidAttachmentError("Invalid object key", details={"key": key})
        return path

    def _read_config(self, name: str) -> dict:
        config_path = self._bucket_dir(name) / _BUCKET_CONFIG
        if not config_path.is_file():
            raise BucketNotFound(name)
        return json.loads(config_path.read_text(encoding="utf-8"))

    async def get_bucket(self, name: str) -> dict:
        return await asyncio.to_thread(self._read_config, name)

    async def create_bucket(self, name: str, file_size_limit: int, allowed_mime_types: List[str]) -> None:
        def create():
            bucket_dir = self._bucket_dir(name)
            bucket_dir.mkdir(parents=True, exist_ok=True)
            config = {"file_size_limit": file_size_limit, "allowed_mime_types": list(allowed_mime_types)}
            # Readers probe the config concurrently; swap it in whole
            staging = bucket_dir / f"{_BUCKET_CONFIG}.{uuid.uuid4().hex}"
            staging.write_text(json.dumps(config), encoding="utf-8")
            os.replace(staging, bucket_dir / _BUCKET_CONFIG)

        try:
            await asyncio.to_thread(create)
        except OSError as e:
            raise StoreError(f"Failed to create bucket {name}: {e}", details={"bucket": name}) from e
        logger.info("Created bucket %s", name)

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        config = await self.get_bucket(bucket)
        if content_type not in config["allowed_mime_types"]:
            raise InvalidAttachmentError(
                f"{content_type} is not allowed in {bucket}", details={"content_type": content_type}
            )
        if len(data) > config["file_size_limit"]:
            raise EncodingTooLargeError(len(data), config["file_size_limit"])

        path = self._object_path(bucket, key)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise StoreError(f"Failed to store {bucket}/{key}: {e}", details={"bucket": bucket, "key": key}) from e
        return f"{bucket}/{key}"

    async def signed_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        token = create_blob_token(bucket, key, ttl_seconds)
        return f"{self.base_url}/v1/attachments/{bucket}/{key}?token={token}"

    async def get(self, bucket: str, key: str) -> Tuple[bytes, str]:
        path = self._object_path(bucket, key)
        if not path.is_file():
            raise ResourceNotFoundError("Attachment", f"{bucket}/{key}")
        data = await asyncio.to_thread(path.read_bytes)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return data, content_type


class AttachmentProvisioner:

    def __init__(
        self,
        blob_store: BlobStore,
        encoder: Optional[ImageEncoder] = None,
        bucket: str = "chat-attachments",
        max_bytes: int = 10 * 1024 * 1024,
        allowed_mime_types: Optional[List[str]] = None,
        url_ttl_seconds: int = 365 * 24 * 60 * 60,
    ):
        self.blob_store = blob_store
        self.encoder = encoder or PillowJpegEncoder()
        self.bucket = bucket
        self.max_bytes = max_bytes
        self.allowed_mime_types = allowed_mime_types or ["image/jpeg", "image/png"]
        self.url_ttl_seconds = url_ttl_seconds

    async def ensure_bucket(self) -> None:
        """Probe the bucket and create it if missing. A failed create is not fatal."""
        try:
            await self.blob_store.get_bucket(self.bucket)
            return
        except StoreError:
            logger.info("Bucket %s not found, creating it", self.bucket)

        try:
            await self.blob_store.create_bucket(self.bucket, self.max_bytes, self.allowed_mime_types)
        except StoreError as e:
            # Another writer may have created it; the upload will tell
            logger.warning("Could not create bucket %s, continuing with upload: %s", self.bucket, e.message)

    def compress(self, image: bytes) -> bytes:
        """
        Encode at quality 0.7, stepping down by 0.1 until the result fits.

        Raises:
            EncodingTooLargeError: if still over the cap at quality 0.1
        """
        encoded = b""
        for tenths in range(QUALITY_START_TENTHS, QUALITY_FLOOR_TENTHS - 1, -1):
            encoded = self.encoder.encode(image, tenths / 10)
            if len(encoded) <= self.max_bytes:
                logger.debug("Encoded attachment at quality 0.%d (%d bytes)", tenths, len(encoded))
                return encoded
        raise EncodingTooLargeError(len(encoded), self.max_bytes)

    async def upload_image(self, image: bytes) -> Attachment:
        """Compress, upload under a fresh key, and return the signed URL."""
        await self.ensure_bucket()
        data = await asyncio.to_thread(self.compress, image)
        key = f"{uuid.uuid4()}.jpg"
        await self.blob_store.put(self.bucket, key, data, "image/jpeg")
        url = await self.blob_store.signed_url(self.bucket, key, self.url_ttl_seconds)
        logger.info("Uploaded attachment %s/%s (%d bytes)", self.bucket, key, len(data))
        return Attachment(url=url, content_type="image/jpeg")

"""
Attachment provisioning: bucket ensure, compression ladder, upload, signed URLs.
"""

import io
import pytest
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

from jose import jwt
from PIL import Image

from fleetops.app.core.config import settings
from fleetops.app.core.exceptions import EncodingTooLargeError, InvalidAttachmentError, StoreError
from fleetops.app.core.jwt import verify_blob_token
from fleetops.app.services.attachments import AttachmentProvisioner, BucketNotFound, PillowJpegEncoder

MIB = 1024 * 1024


class ScriptedEncoder:
    """Returns a payload whose size depends only on the requested quality."""

    def __init__(self, sizes):
        self.sizes = sizes
        self.qualities = []

    def encode(self, image, quality):
        self.qualities.append(quality)
        return b"\xff" * self.sizes[quality]


class RacingBlobStore:
    """Bucket probe and create both fail, as when another writer creates it concurrently."""

    def __init__(self):
        self.objects = {}

    async def get_bucket(self, name):
        raise BucketNotFound(name)

    async def create_bucket(self, name, file_size_limit, allowed_mime_types):
        raise StoreError("The resource already exists", details={"bucket": name})

    async def put(self, bucket, key, data, content_type):
        self.objects[(bucket, key)] = (data, content_type)
        return f"{bucket}/{key}"

    async def signed_url(self, bucket, key, ttl_seconds):
        return f"https://blobs.test/{bucket}/{key}?ttl={ttl_seconds}"

    async def get(self, bucket, key):
        return self.objects[(bucket, key)]


def png_bytes(size=(64, 48)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 40, 90)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestCompress:

    def test_steps_down_until_it_fits(self, blob_store):
        encoder = ScriptedEncoder({0.7: 15 * MIB, 0.6: 14 * MIB, 0.5: 12 * MIB, 0.4: 11 * MIB, 0.3: 9 * MIB})
        provisioner = AttachmentProvisioner(blob_store, encoder=encoder)

        encoded = provisioner.compress(b"raw")

        assert len(encoded) <= 10 * MIB
        assert encoder.qualities == [0.7, 0.6, 0.5, 0.4, 0.3]

    def test_first_quality_that_fits_wins(self, blob_store):
        encoder = ScriptedEncoder({0.7: 100})
        provisioner = AttachmentProvisioner(blob_store, encoder=encoder, max_bytes=100)

        assert len(provisioner.compress(b"raw")) == 100
        assert encoder.qualities == [0.7]

    def test_too_large_at_floor_fails(self, blob_store):
        encoder = ScriptedEncoder({q / 10: 2000 for q in range(1, 8)})
        provisioner = AttachmentProvisioner(blob_store, encoder=encoder, max_bytes=1000)

        with pytest.raises(EncodingTooLargeError) as exc_info:
            provisioner.compress(b"raw")

        assert encoder.qualities == [0.7, 0.6, 0.5, 0.4, 0.3, 0.2, 0.1]
        assert exc_info.value.details == {"size": 2000, "limit": 1000}


class TestEnsureBucket:

    async def test_creates_missing_bucket_with_config(self, blob_store):
        provisioner = AttachmentProvisioner(blob_store, bucket="chat-attachments")

        await provisioner.ensure_bucket()

        config = await blob_store.get_bucket("chat-attachments")
        assert config == {"file_size_limit": 10 * MIB, "allowed_mime_types": ["image/jpeg", "image/png"]}

    async def test_existing_bucket_is_not_recreated(self, blob_store, mocker):
        provisioner = AttachmentProvisioner(blob_store)
        await provisioner.ensure_bucket()
        create = mocker.spy(blob_store, "create_bucket")

        await provisioner.ensure_bucket()

        create.assert_not_called()

    async def test_failed_create_is_swallowed_and_upload_proceeds(self):
        blob_store = RacingBlobStore()
        provisioner = AttachmentProvisioner(blob_store, encoder=ScriptedEncoder({0.7: 10}))

        attachment = await provisioner.upload_image(b"raw")

        assert attachment.content_type == "image/jpeg"
        assert len(blob_store.objects) == 1
        (bucket, key), = blob_store.objects
        assert key.endswith(".jpg")
        assert attachment.url == f"https://blobs.test/{bucket}/{key}?ttl={365 * 24 * 60 * 60}"


class TestUpload:

    async def test_upload_issues_year_long_signed_url(self, blob_store):
        provisioner = AttachmentProvisioner(blob_store)

        attachment = await provisioner.upload_image(png_bytes())

        url = urlparse(attachment.url)
        _, _, bucket, key = url.path.strip("/").split("/")
        token = parse_qs(url.query)["token"][0]
        assert url.path.startswith("/v1/attachments/")
        assert verify_blob_token(token, bucket, key)
        assert not verify_blob_token(token, bucket, "other.jpg")

        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        ttl = claims["exp"] - datetime.now(timezone.utc).timestamp()
        assert 364 * 24 * 3600 < ttl <= 365 * 24 * 3600

        data, content_type = await blob_store.get(bucket, key)
        assert content_type == "image/jpeg"
        assert data[:2] == b"\xff\xd8"

    async def test_each_upload_gets_a_fresh_key(self, blob_store):
        provisioner = AttachmentProvisioner(blob_store)
        first = await provisioner.upload_image(png_bytes())
        second = await provisioner.upload_image(png_bytes())
        assert first.url.split("?")[0] != second.url.split("?")[0]

    async def test_blob_store_enforces_mime_allow_list(self, blob_store):
        await blob_store.create_bucket("chat-attachments", 10 * MIB, ["image/jpeg"])
        with pytest.raises(InvalidAttachmentError):
            await blob_store.put("chat-attachments", "doc.pdf", b"%PDF", "application/pdf")

    async def test_put_into_missing_bucket_fails(self, blob_store):
        with pytest.raises(BucketNotFound):
            await blob_store.put("nowhere", "a.jpg", b"x", "image/jpeg")


def test_pillow_encoder_produces_jpeg():
    encoded = PillowJpegEncoder().encode(png_bytes(), 0.7)
    assert encoded[:2] == b"\xff\xd8"


def test_pillow_encoder_rejects_non_images():
    with pytest.raises(InvalidAttachmentError):
        PillowJpegEncoder().encode(b"definitely not an image", 0.7)

"""
Concurrency Tests.

Parallel uploads and bucket provisioning must not collide.
"""

import asyncio
import pytest

from fleetops.app.services.attachments import AttachmentProvisioner


class FixedSizeEncoder:
    def encode(self, image, quality):
        return b"\xff\xd8" + image


@pytest.mark.asyncio
async def test_parallel_uploads_get_distinct_objects(blob_store):
    provisioner = AttachmentProvisioner(blob_store, encoder=FixedSizeEncoder())

    attachments = await asyncio.gather(*(provisioner.upload_image(b"frame-%d" % i) for i in range(8)))

    paths = {a.url.split("?")[0] for a in attachments}
    assert len(paths) == 8


@pytest.mark.asyncio
async def test_parallel_bucket_provisioning_is_idempotent(blob_store):
    provisioners = [AttachmentProvisioner(blob_store) for _ in range(5)]

    await asyncio.gather(*(p.ensure_bucket() for p in provisioners))

    config = await blob_store.get_bucket("chat-attachments")
    assert config["allowed_mime_types"] == ["image/jpeg", "image/png"]

"""
Attachment download.

Signed attachment URLs resolve here; the token in the query string is the
only credential needed.
"""

from fastapi import APIRouter, Depends, Path, Query, Response

from fleetops.app.core.dependencies import get_blob_store
from fleetops.app.core.exceptions import AuthenticationError
from fleetops.app.core.jwt import verify_blob_token
from fleetops.app.services.attachments import BlobStore

router = APIRouter(prefix="/attachments", tags=["Attachments"])


@router.get("/{bucket}/{key}")
async def download_attachment(
    bucket: str = Path(...),
    key: str = Path(...),
    token: str = Query(..., description="Signed grant from the attachment URL"),
    blob_store: BlobStore = Depends(get_blob_store),
):
    if not verify_blob_token(token, bucket, key):
        raise AuthenticationError("Invalid or expired attachment link")
    data, content_type = await blob_store.get(bucket, key)
    return Response(content=data, media_type=content_type)

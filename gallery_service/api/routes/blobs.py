"""
Stored image download
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from io import BytesIO

from ...infrastructure.blob_storage import BlobStorage, is_blob_id
from ..dependencies import get_blob_storage


router = APIRouter(prefix="/api/v1/blobs", tags=["Blobs"])


@router.get("/{blob_id}")
async def get_blob(
    blob_id: str,
    blob_storage: BlobStorage = Depends(get_blob_storage)
):
    """
    Download a stored image

    - **blob_id**: Id returned for a profile picture, capture or thumbnail
    """
    blob = blob_storage.get_image_bytes(blob_id) if is_blob_id(blob_id) else None

    if not blob or not blob[0].lower().startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Image not found"
        )

    content_type, data = blob
    return StreamingResponse(
        BytesIO(data),
        media_type=content_type,
        headers={
            "Content-Disposition": f'inline; filename="{blob_id}"',
            "X-Content-Type-Options": "nosniff"
        }
    )

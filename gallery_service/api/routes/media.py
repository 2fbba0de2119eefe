"""
Media routes
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from typing import Optional

from ...schemas import (
    MediaCreate, MediaListResponse, MediaResponse, MediaUpdate, MessageResponse,
)
from ...domain.models import User
from ...application.services import InvalidMediaError, MediaService
from ...application.upload import UploadService
from ..dependencies import get_current_user, get_media_service, get_upload_service


router = APIRouter(prefix="/api/v1/media", tags=["Media"])


def _media_list(items) -> MediaListResponse:
    return MediaListResponse(
        items=[MediaResponse.model_validate(item) for item in items],
        total=len(items)
    )


@router.get("", response_model=MediaListResponse)
async def list_media(
    type: Optional[str] = Query(None, description="image or video"),
    category: Optional[str] = Query(None, description="Category name (case-insensitive)"),
    media_service: MediaService = Depends(get_media_service)
):
    """
    List media, newest first

    - **type**: Optional media type filter
    - **category**: Optional category filter
    """
    if type and category:
        items = await media_service.get_by_type_and_category(type, category)
    elif type:
        items = await media_service.get_by_type(type)
    elif category:
        items = await media_service.get_by_category(category)
    else:
        items = await media_service.get_all()

    return _media_list(items)


@router.get("/recent", response_model=MediaListResponse)
async def list_recent_media(
    limit: Optional[int] = Query(None, ge=1, le=100),
    media_service: MediaService = Depends(get_media_service)
):
    """Most recently uploaded media"""
    return _media_list(await media_service.get_recent(limit))


@router.get("/user/{user_id}", response_model=MediaListResponse)
async def list_user_media(
    user_id: str,
    media_service: MediaService = Depends(get_media_service)
):
    """Media uploaded by a user"""
    return _media_list(await media_service.get_user_media(user_id))


@router.get("/{media_id}", response_model=MediaResponse)
async def get_media(
    media_id: str,
    media_service: MediaService = Depends(get_media_service)
):
    """Get media by ID"""
    item = await media_service.get_by_id(media_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Media not found"
        )

    return MediaResponse.model_validate(item)


@router.post("", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def create_media(
    media_data: MediaCreate,
    current_user: User = Depends(get_current_user),
    upload_service: UploadService = Depends(get_upload_service)
):
    """
    Add media by URL

    - **url**: Absolute URL, or data URI of a captured image
    - **type**: image or video
    - **category**: Category name
    - **thumbnail**: Optional custom thumbnail (URL or data URI)
    - Requires authentication
    """
    result = await upload_service.upload_media(
        url=media_data.url,
        media_type=media_data.type,
        title=media_data.title,
        category=media_data.category,
        user_id=current_user.id,
        custom_thumbnail=media_data.thumbnail
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    return MediaResponse.model_validate(result.data)


@router.post("/capture", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def upload_capture(
    file: UploadFile = File(...),
    category: str = Form("", max_length=100),
    title: Optional[str] = Form(None, max_length=255),
    current_user: User = Depends(get_current_user),
    upload_service: UploadService = Depends(get_upload_service)
):
    """
    Upload a captured image file

    - **file**: Image file (jpg, jpeg, png, gif, webp)
    - Requires authentication
    """
    data = await file.read()

    result = await upload_service.upload_capture(
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        title=title,
        category=category,
        user_id=current_user.id
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    return MediaResponse.model_validate(result.data)


@router.put("/{media_id}", response_model=MediaResponse)
async def update_media(
    media_id: str,
    media_data: MediaUpdate,
    current_user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service)
):
    """
    Update media

    Only the owner can update their media.
    """
    try:
        item = await media_service.update(
            media_id,
            media_data.model_dump(exclude_none=True),
            requester_id=current_user.id
        )
    except InvalidMediaError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Media not found"
        )

    return MediaResponse.model_validate(item)


@router.delete("/{media_id}", response_model=MessageResponse)
async def delete_media(
    media_id: str,
    current_user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service)
):
    """
    Delete media and its comments

    Only the owner can delete their media.
    """
    if not await media_service.delete(media_id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Media not found"
        )

    return MessageResponse(message="Media deleted successfully")

"""
User routes: profile, favorites and history of the session user
"""
from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas import (
    MediaListResponse, MediaResponse, MessageResponse, ProfileImageUpdate,
    UpdateProfile, UserResponse,
)
from ...domain.models import User
from ...application.services import MediaService, UserService
from ..dependencies import get_current_user, get_media_service, get_user_service


router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _media_list(items) -> MediaListResponse:
    return MediaListResponse(
        items=[MediaResponse.model_validate(item) for item in items],
        total=len(items)
    )


async def _require_media(media_id: str, media_service: MediaService):
    if await media_service.get_by_id(media_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Media not found"
        )


@router.get("/me", response_model=UserResponse)
async def get_my_profile(current_user: User = Depends(get_current_user)):
    """
    Get current user's profile

    Requires authentication.
    """
    return UserResponse.model_validate(current_user)


@router.put("/me", response_model=UserResponse)
async def update_my_profile(
    profile_data: UpdateProfile,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """
    Update current user's profile

    Requires authentication.
    """
    updates = profile_data.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    result = await user_service.update(current_user.id, updates)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    return UserResponse.model_validate(result.data)


@router.post("/me/image", response_model=UserResponse)
async def update_my_image(
    image_data: ProfileImageUpdate,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """
    Replace current user's profile picture

    - **image**: base64 data URI; stored as a square avatar
    """
    result = await user_service.update_profile_image(current_user.id, image_data.image)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    return UserResponse.model_validate(await user_service.get_by_id(current_user.id))


@router.get("/me/favorites", response_model=MediaListResponse)
async def get_my_favorites(
    current_user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service)
):
    """Favorite media of the current user"""
    return _media_list(await media_service.get_favorites(current_user.favorites))


@router.post("/me/favorites/{media_id}", response_model=MessageResponse)
async def add_favorite(
    media_id: str,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
    media_service: MediaService = Depends(get_media_service)
):
    """Add media to the current user's favorites"""
    await _require_media(media_id, media_service)

    if not await user_service.add_to_favorites(current_user.id, media_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return MessageResponse(message="Added to favorites")


@router.delete("/me/favorites/{media_id}", response_model=MessageResponse)
async def remove_favorite(
    media_id: str,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Remove media from the current user's favorites"""
    if not await user_service.remove_from_favorites(current_user.id, media_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return MessageResponse(message="Removed from favorites")


@router.get("/me/history", response_model=MediaListResponse)
async def get_my_history(
    current_user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service)
):
    """Media viewed by the current user, most recent first"""
    return _media_list(await media_service.get_history(current_user.history))


@router.post("/me/history/{media_id}", response_model=MessageResponse)
async def add_history(
    media_id: str,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
    media_service: MediaService = Depends(get_media_service)
):
    """Record that the current user viewed a media item"""
    await _require_media(media_id, media_service)

    if not await user_service.add_to_history(current_user.id, media_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return MessageResponse(message="Added to history")

"""
Comment routes
"""
from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas import (
    CommentCreate, CommentListResponse, CommentResponse, MessageResponse,
)
from ...domain.models import User
from ...application.services import CommentService
from ..dependencies import get_comment_service, get_current_user


router = APIRouter(prefix="/api/v1", tags=["Comments"])


@router.get("/media/{media_id}/comments", response_model=CommentListResponse)
async def list_comments(
    media_id: str,
    comment_service: CommentService = Depends(get_comment_service)
):
    """Comments on a media item, newest first"""
    comments = await comment_service.get_by_media_id(media_id)
    return CommentListResponse(
        items=[CommentResponse.model_validate(comment) for comment in comments],
        total=len(comments)
    )


@router.post("/media/{media_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    media_id: str,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    comment_service: CommentService = Depends(get_comment_service)
):
    """
    Comment on a media item

    Requires authentication.
    """
    result = await comment_service.add(media_id, current_user.id, comment_data.text)

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    return CommentResponse.model_validate(result.data)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    comment_service: CommentService = Depends(get_comment_service)
):
    """
    Delete a comment

    Only the author can delete their comment.
    """
    if not await comment_service.delete(comment_id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found"
        )

    return MessageResponse(message="Comment deleted successfully")

"""
FastAPI dependencies
"""
import re
import secrets

from fastapi import Depends, HTTPException, Request, Response, status

from ..config import settings
from ..domain.models import User
from ..domain.repositories import (
    ICommentRepository, IMediaRepository, IStorage, IUserRepository,
)
from ..infrastructure.blob_storage import BlobStorage
from ..infrastructure.database.connection import db_connection
from ..infrastructure.database.repositories import (
    CommentRepository, MediaRepository, UserRepository,
)
from ..infrastructure.keyvalue.repositories import (
    KeyValueCommentRepository, KeyValueMediaRepository, KeyValueUserRepository,
)
from ..application.services import CommentService, MediaService, UserService
from ..application.session import SessionManager
from ..application.upload import UploadService


async def get_storage(request: Request) -> IStorage:
    """Durable key-value storage created at startup"""
    return request.app.state.storage


async def get_tab_storage(request: Request) -> IStorage:
    """Process-scoped store holding the ephemeral session marker"""
    return request.app.state.tab_storage


async def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blob_storage


CLIENT_ID = re.compile(r"^[A-Za-z0-9_-]{32,128}$")


def set_session_cookie(request: Request, response: Response, client_id: str, remembered: bool) -> None:
    """Remembered sessions keep the cookie across browser restarts"""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=client_id,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
        max_age=settings.SESSION_COOKIE_MAX_AGE if remembered else None,
    )


async def get_client_id(request: Request, response: Response) -> str:
    """
    Id of the calling client, read from the session cookie

    A client without a valid cookie is issued a new id.
    """
    client_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if client_id and CLIENT_ID.match(client_id):
        return client_id

    client_id = secrets.token_urlsafe(32)
    set_session_cookie(request, response, client_id, remembered=False)
    return client_id


async def get_session_manager(
    storage: IStorage = Depends(get_storage),
    tab_storage: IStorage = Depends(get_tab_storage),
    client_id: str = Depends(get_client_id)
) -> SessionManager:
    return SessionManager(storage, tab_storage, client_id)


async def get_media_repository(storage: IStorage = Depends(get_storage)) -> IMediaRepository:
    """Get media repository dependency"""
    if settings.DATA_BACKEND == "postgres":
        return MediaRepository(db_connection)
    return KeyValueMediaRepository(storage)


async def get_comment_repository(storage: IStorage = Depends(get_storage)) -> ICommentRepository:
    """Get comment repository dependency"""
    if settings.DATA_BACKEND == "postgres":
        return CommentRepository(db_connection)
    return KeyValueCommentRepository(storage)


async def get_user_repository(storage: IStorage = Depends(get_storage)) -> IUserRepository:
    """Get user repository dependency"""
    if settings.DATA_BACKEND == "postgres":
        return UserRepository(db_connection)
    return KeyValueUserRepository(storage)


async def get_media_service(
    media_repo: IMediaRepository = Depends(get_media_repository),
    comment_repo: ICommentRepository = Depends(get_comment_repository),
    blob_storage: BlobStorage = Depends(get_blob_storage)
) -> MediaService:
    """Get media service dependency"""
    return MediaService(media_repo, comment_repo, blob_storage)


async def get_comment_service(
    comment_repo: ICommentRepository = Depends(get_comment_repository),
    media_repo: IMediaRepository = Depends(get_media_repository),
    user_repo: IUserRepository = Depends(get_user_repository)
) -> CommentService:
    """Get comment service dependency"""
    return CommentService(comment_repo, media_repo, user_repo)


async def get_user_service(
    user_repo: IUserRepository = Depends(get_user_repository),
    sessions: SessionManager = Depends(get_session_manager),
    blob_storage: BlobStorage = Depends(get_blob_storage)
) -> UserService:
    """Get user service dependency"""
    return UserService(user_repo, sessions, blob_storage)


async def get_upload_service(
    media_service: MediaService = Depends(get_media_service),
    user_repo: IUserRepository = Depends(get_user_repository),
    blob_storage: BlobStorage = Depends(get_blob_storage)
) -> UploadService:
    """Get upload service dependency"""
    return UploadService(media_service, user_repo, blob_storage)


async def get_current_user(user_service: UserService = Depends(get_user_service)) -> User:
    """
    Get the user of the current session

    Raises:
        HTTPException: If there is no session or its user no longer exists
    """
    session = user_service.get_session()
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = await user_service.get_by_id(session.user.id)
    if user is None:
        user_service.logout()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user

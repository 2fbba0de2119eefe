"""
Storage maintenance routes
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...config import settings
from ...schemas import MessageResponse, MigrationResponse
from ...domain.repositories import IStorage
from ...infrastructure.database.connection import db_connection
from ...infrastructure.database.repositories import (
    CommentRepository, MediaRepository, UserRepository,
)
from ...infrastructure.keyvalue.repositories import (
    KeyValueCommentRepository, KeyValueMediaRepository, KeyValueUserRepository,
)
from ...infrastructure.storage import initialize_storage
from ...application.migration import migrate_legacy_keys, migrate_to_relational
from ..dependencies import get_storage, get_tab_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/storage", tags=["Storage"])


@router.post("/migrate", response_model=MigrationResponse)
async def migrate_legacy_data(storage: IStorage = Depends(get_storage)):
    """Copy data stored under legacy keys into the current keys"""
    result = migrate_legacy_keys(storage)

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.error
        )

    return MigrationResponse(counts=result.data)


@router.post("/migrate/relational", response_model=MigrationResponse)
async def migrate_relational_data(storage: IStorage = Depends(get_storage)):
    """
    Copy the key-value dataset into PostgreSQL

    Only available when the service runs on the postgres data backend.
    """
    if settings.DATA_BACKEND != "postgres":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Relational backend is not enabled"
        )

    result = await migrate_to_relational(
        KeyValueUserRepository(storage),
        KeyValueMediaRepository(storage),
        KeyValueCommentRepository(storage),
        UserRepository(db_connection),
        MediaRepository(db_connection),
        CommentRepository(db_connection)
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    return MigrationResponse(counts=result.data)


@router.post("/reset", response_model=MessageResponse)
async def reset_storage(
    storage: IStorage = Depends(get_storage),
    tab_storage: IStorage = Depends(get_tab_storage)
):
    """Delete all local data and recreate empty collections"""
    if not storage.clear():
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not clear storage"
        )
    tab_storage.clear()
    initialize_storage(storage)

    logger.warning("Storage reset")
    return MessageResponse(message="Storage reset")

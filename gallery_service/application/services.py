"""
Application services - Business logic layer
"""
import logging
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from ..config import settings
from ..domain.models import (
    Comment, MediaItem, MediaType, OperationResult, Session, User,
    generate_id, utcnow,
)
from ..domain.repositories import ICommentRepository, IMediaRepository, IUserRepository
from ..infrastructure.auth import hash_password, validate_password_strength, verify_password
from ..infrastructure.blob_storage import BlobStorage, blob_owner
from ..infrastructure.image_processor import ImageProcessingError, ImageProcessor
from .session import SessionManager

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: Optional[str]) -> str:
    """Emails are compared and stored lower-cased"""
    return (email or "").strip().lower()


def parse_media_type(value: Union[str, MediaType, None]) -> Optional[MediaType]:
    try:
        return MediaType(value)
    except ValueError:
        return None


def is_absolute_url(value: Optional[str]) -> bool:
    """Check if value is an http(s) URL with a host"""
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_owned_blob(value: Optional[str], user_id: Optional[str]) -> bool:
    """Check if value is a blob id stored for user_id"""
    owner = blob_owner(value)
    return owner is not None and owner == str(user_id)


class InvalidMediaError(ValueError):
    """Raised when a media update carries an unusable value"""


class MediaService:
    """Media service - handles media-related business logic"""

    def __init__(
        self,
        media_repository: IMediaRepository,
        comment_repository: ICommentRepository,
        blob_storage: Optional[BlobStorage] = None
    ):
        self.media_repo = media_repository
        self.comment_repo = comment_repository
        self.blob_storage = blob_storage

    async def get_all(self) -> List[MediaItem]:
        """All media, newest first"""
        return await self.media_repo.find_all()

    async def get_by_id(self, media_id: str) -> Optional[MediaItem]:
        return await self.media_repo.find_by_id(media_id)

    async def get_by_type(self, media_type: Union[str, MediaType]) -> List[MediaItem]:
        parsed = parse_media_type(media_type)
        if parsed is None:
            return []
        return await self.media_repo.find_by_type(parsed)

    async def get_by_category(self, category: str) -> List[MediaItem]:
        return await self.media_repo.find_by_category(category)

    async def get_by_type_and_category(
        self,
        media_type: Union[str, MediaType],
        category: str
    ) -> List[MediaItem]:
        parsed = parse_media_type(media_type)
        if parsed is None:
            return []
        wanted = category.lower()
        items = await self.media_repo.find_by_type(parsed)
        return [item for item in items if item.category.lower() == wanted]

    async def get_user_media(self, user_id: str) -> List[MediaItem]:
        """Media uploaded by a user"""
        return await self.media_repo.find_by_user_id(user_id)

    async def add(self, item: MediaItem) -> Optional[MediaItem]:
        """
        Add a media item to the front of the collection

        An id and creation time are assigned when missing.
        """
        new_item = replace(
            item,
            id=item.id or generate_id(),
            title=item.title or settings.DEFAULT_TITLE,
            category=item.category.lower(),
            created_at=item.created_at or utcnow(),
        )
        created = await self.media_repo.create(new_item)
        if created is None:
            logger.error(f"Failed to store media {new_item.id}")
        return created

    async def update(
        self,
        media_id: str,
        updates: Dict[str, Any],
        requester_id: Optional[str] = None
    ) -> Optional[MediaItem]:
        """
        Update title, url, type, category or thumbnail

        When requester_id is given, only the owner may update. A url must be
        an http(s) URL or one of the owner's stored blobs; a thumbnail may
        also be a site path. Stored blobs the item stops referencing are
        deleted.

        Returns:
            Updated MediaItem, or None when missing or not owned

        Raises:
            InvalidMediaError: If a url, thumbnail or type value is unusable
        """
        item = await self.media_repo.find_by_id(media_id)
        if item is None:
            return None

        if requester_id is not None and not item.is_owner(requester_id):
            logger.info(f"User {requester_id} may not update media {media_id}")
            return None

        changes = {}
        for field in ("title", "url", "type", "category", "thumbnail"):
            value = updates.get(field)
            if value is None:
                continue
            if field == "type":
                value = parse_media_type(value)
                if value is None:
                    raise InvalidMediaError("Media type must be 'image' or 'video'")
            elif field == "category":
                value = value.lower()
            elif field == "url":
                value = value.strip()
                if not (is_absolute_url(value) or is_owned_blob(value, item.user_id)):
                    raise InvalidMediaError("Invalid URL")
            elif field == "thumbnail":
                value = value.strip()
                if not (is_absolute_url(value) or value.startswith("/")
                        or is_owned_blob(value, item.user_id)):
                    raise InvalidMediaError("Invalid thumbnail")
            changes[field] = value

        if not changes:
            return item

        updated = await self.media_repo.update(media_id, changes)
        if updated is not None:
            self._delete_blobs(item, keep=(updated.url, updated.thumbnail))
        return updated

    async def delete(self, media_id: str, requester_id: Optional[str]) -> bool:
        """
        Delete media owned by requester_id

        Returns False both when the media does not exist and when the
        requester is not its owner.
        """
        item = await self.media_repo.find_by_id(media_id)
        if item is None or not item.is_owner(requester_id):
            logger.info(f"Refused deletion of media {media_id} by user {requester_id}")
            return False

        if not await self.media_repo.delete(media_id):
            return False

        await self.comment_repo.delete_by_media_id(media_id)
        self._delete_blobs(item)

        return True

    def _delete_blobs(self, item: MediaItem, keep: Iterable[Optional[str]] = ()) -> None:
        """Remove the item owner's blobs referenced by item, except those in keep"""
        if self.blob_storage is None:
            return
        keep = set(keep)
        for reference in {item.url, item.thumbnail}:
            if reference not in keep and is_owned_blob(reference, item.user_id):
                self.blob_storage.delete_image(reference)

    async def get_recent(self, limit: Optional[int] = None) -> List[MediaItem]:
        """Most recently created media"""
        limit = settings.RECENT_MEDIA_LIMIT if limit is None else limit
        return await self.media_repo.find_recent(limit)

    async def get_favorites(self, favorite_ids: Iterable[str]) -> List[MediaItem]:
        """Media whose id is in favorite_ids, in collection order"""
        return await self.media_repo.find_by_ids(list(favorite_ids))

    async def get_history(self, history_ids: Iterable[str]) -> List[MediaItem]:
        """Media for a history, in history order"""
        history_ids = [str(media_id) for media_id in history_ids]
        items = {item.id: item for item in await self.media_repo.find_by_ids(history_ids)}
        return [items[media_id] for media_id in history_ids if media_id in items]


class CommentService:
    """Comment service - handles comment-related business logic"""

    def __init__(
        self,
        comment_repository: ICommentRepository,
        media_repository: IMediaRepository,
        user_repository: IUserRepository
    ):
        self.comment_repo = comment_repository
        self.media_repo = media_repository
        self.user_repo = user_repository

    async def get_all(self) -> List[Comment]:
        return await self.comment_repo.find_all()

    async def get_by_media_id(self, media_id: str) -> List[Comment]:
        """Comments on a media item, newest first"""
        return await self.comment_repo.find_by_media_id(media_id)

    async def add(self, media_id: str, user_id: str, text: str) -> OperationResult:
        """Add a comment written by user_id"""
        text = (text or "").strip()
        if not text:
            return OperationResult.fail("Comment text cannot be empty")

        if await self.media_repo.find_by_id(media_id) is None:
            return OperationResult.fail("Media not found")

        user = await self.user_repo.find_by_id(user_id)
        if user is None:
            return OperationResult.fail("User not found")

        comment = Comment(
            id=generate_id(),
            media_id=str(media_id),
            user_id=user.id,
            user_name=user.name,
            user_avatar=user.image,
            text=text,
            created_at=utcnow(),
        )
        created = await self.comment_repo.create(comment)
        if created is None:
            return OperationResult.fail("Could not save comment")
        return OperationResult.ok(created)

    async def delete(self, comment_id: str, requester_id: Optional[str]) -> bool:
        """Delete a comment written by requester_id"""
        comment = await self.comment_repo.find_by_id(comment_id)
        if comment is None or not comment.is_author(requester_id):
            logger.info(f"Refused deletion of comment {comment_id} by user {requester_id}")
            return False
        return await self.comment_repo.delete(comment_id)


class UserService:
    """User service - registration, login, profile, favorites and history"""

    def __init__(
        self,
        user_repository: IUserRepository,
        session_manager: SessionManager,
        blob_storage: Optional[BlobStorage] = None
    ):
        self.user_repo = user_repository
        self.sessions = session_manager
        self.blob_storage = blob_storage

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        remember: bool = False
    ) -> OperationResult:
        """
        Register a new user and open a session for them

        Returns:
            OperationResult carrying the public user
        """
        name = (name or "").strip()
        email = normalize_email(email)

        if not name or not email or not password:
            return OperationResult.fail("All fields are required")

        if not _EMAIL.match(email):
            return OperationResult.fail("Invalid email address")

        is_valid, error_msg = validate_password_strength(password)
        if not is_valid:
            return OperationResult.fail(error_msg)

        if await self.user_repo.find_by_email(email) is not None:
            return OperationResult.fail("Email already registered")

        user = User(
            id=generate_id(),
            name=name,
            email=email,
            password_hash=hash_password(password),
            created_at=utcnow(),
        )
        created = await self.user_repo.create(user)
        if created is None:
            return OperationResult.fail("Could not create user")

        public_user = created.public()
        self.sessions.save(public_user, remember)
        logger.info(f"Registered user {public_user.id}")
        return OperationResult.ok(public_user)

    async def login(self, email: str, password: str, remember: bool = False) -> Optional[User]:
        """
        Authenticate and open a session

        Returns:
            Public user, or None when the credentials do not match
        """
        user = await self.user_repo.find_by_email(normalize_email(email))
        if user is None or not verify_password(password, user.password_hash):
            return None

        public_user = user.public()
        self.sessions.save(public_user, remember)
        return public_user

    def logout(self) -> None:
        self.sessions.clear()

    def get_session(self) -> Optional[Session]:
        return self.sessions.get()

    async def get_all(self) -> List[User]:
        return [user.public() for user in await self.user_repo.find_all()]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        user = await self.user_repo.find_by_id(user_id)
        return user.public() if user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        user = await self.user_repo.find_by_email(normalize_email(email))
        return user.public() if user else None

    async def update(self, user_id: str, updates: Dict[str, Any]) -> OperationResult:
        """Update name, email, password or image"""
        changes = {}

        if updates.get("name") is not None:
            name = updates["name"].strip()
            if not name:
                return OperationResult.fail("Name cannot be empty")
            changes["name"] = name

        if updates.get("email") is not None:
            email = normalize_email(updates["email"])
            if not _EMAIL.match(email):
                return OperationResult.fail("Invalid email address")
            existing = await self.user_repo.find_by_email(email)
            if existing is not None and existing.id != str(user_id):
                return OperationResult.fail("Email already registered")
            changes["email"] = email

        if updates.get("password") is not None:
            is_valid, error_msg = validate_password_strength(updates["password"])
            if not is_valid:
                return OperationResult.fail(error_msg)
            changes["password_hash"] = hash_password(updates["password"])

        if updates.get("image") is not None:
            changes["image"] = updates["image"]

        if not changes:
            user = await self.user_repo.find_by_id(user_id)
        else:
            user = await self.user_repo.update(user_id, changes)

        if user is None:
            return OperationResult.fail("User not found")

        public_user = user.public()
        self.sessions.refresh(user_id, name=public_user.name, email=public_user.email, image=public_user.image)
        return OperationResult.ok(public_user)

    async def update_profile_image(self, user_id: str, image_data: str) -> OperationResult:
        """
        Store a new profile picture given as a data URI

        The image is re-encoded as a square JPEG avatar. The previous stored
        picture is deleted.

        Returns:
            OperationResult carrying the new blob id
        """
        if self.blob_storage is None:
            return OperationResult.fail("Image storage is not configured")

        user = await self.user_repo.find_by_id(user_id)
        if user is None:
            return OperationResult.fail("User not found")

        try:
            avatar = ImageProcessor.create_thumbnail_data_uri(
                image_data,
                settings.PROFILE_IMAGE_SIZE,
                settings.THUMBNAIL_QUALITY
            )
        except ImageProcessingError as e:
            logger.info(f"Rejected profile image for user {user_id}: {e}")
            return OperationResult.fail("Invalid image")

        blob_id = self.blob_storage.upload_image(avatar, user.id, "profile")
        if not blob_id:
            return OperationResult.fail("Could not store image")

        if await self.user_repo.update(user.id, {"image": blob_id}) is None:
            self.blob_storage.delete_image(blob_id)
            return OperationResult.fail("User not found")

        if is_owned_blob(user.image, user.id) and user.image != blob_id:
            self.blob_storage.delete_image(user.image)

        self.sessions.refresh(user.id, image=blob_id)
        return OperationResult.ok(blob_id)

    async def add_to_favorites(self, user_id: str, media_id: str) -> bool:
        favorites = await self.user_repo.add_favorite(user_id, media_id)
        if favorites is None:
            return False
        self.sessions.refresh(user_id, favorites=favorites)
        return True

    async def remove_from_favorites(self, user_id: str, media_id: str) -> bool:
        favorites = await self.user_repo.remove_favorite(user_id, media_id)
        if favorites is None:
            return False
        self.sessions.refresh(user_id, favorites=favorites)
        return True

    async def add_to_history(self, user_id: str, media_id: str) -> bool:
        """Move media_id to the front of the history, keeping at most HISTORY_LIMIT entries"""
        history = await self.user_repo.push_history(user_id, media_id, settings.HISTORY_LIMIT)
        if history is None:
            return False
        self.sessions.refresh(user_id, history=history)
        return True

    async def get_favorites(self, user_id: str) -> List[str]:
        user = await self.user_repo.find_by_id(user_id)
        return list(user.favorites) if user else []

    async def get_history(self, user_id: str) -> List[str]:
        user = await self.user_repo.find_by_id(user_id)
        return list(user.history) if user else []

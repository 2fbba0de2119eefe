"""
Repository implementations - PostgreSQL data access layer
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from ...domain.models import Comment, MediaItem, MediaType, User
from ...domain.repositories import ICommentRepository, IMediaRepository, IUserRepository
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> Optional[int]:
    """Relational ids are integers; anything else cannot match a row"""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _affected_rows(status: Optional[str]) -> int:
    """Parse the row count out of a command status such as 'DELETE 3'"""
    if not status:
        return 0
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


MEDIA_SELECT = """
    SELECT m.id, m.title, m.url, m.type, m.category, m.thumbnail_url,
           m.user_id, m.created_at, u.name AS user_name
    FROM media m
    JOIN users u ON m.user_id = u.id
"""

COMMENT_SELECT = """
    SELECT c.id, c.media_id, c.user_id, c.text, c.created_at,
           u.name AS user_name, u.image_url AS user_avatar
    FROM comments c
    JOIN users u ON c.user_id = u.id
"""


class MediaRepository(IMediaRepository):
    """Media repository implementation using PostgreSQL"""

    _UPDATABLE_COLUMNS = {
        "title": "title",
        "url": "url",
        "type": "type",
        "category": "category",
        "thumbnail": "thumbnail_url",
    }

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def _row_to_media(self, row: Optional[asyncpg.Record]) -> Optional[MediaItem]:
        """Convert database row to MediaItem model"""
        if not row:
            return None
        data = dict(row)
        return MediaItem(
            id=str(data["id"]),
            title=data["title"],
            url=data["url"],
            type=MediaType(data["type"]),
            category=data["category"],
            user_id=str(data["user_id"]),
            thumbnail=data.get("thumbnail_url"),
            created_at=data.get("created_at"),
            user_name=data.get("user_name"),
        )

    async def find_all(self) -> List[MediaItem]:
        rows = await self.db.fetch_all(MEDIA_SELECT + " ORDER BY m.created_at DESC, m.id DESC")
        return [self._row_to_media(row) for row in rows]

    async def find_by_id(self, media_id: str) -> Optional[MediaItem]:
        media_pk = _to_int(media_id)
        if media_pk is None:
            return None
        row = await self.db.fetch_one(MEDIA_SELECT + " WHERE m.id = $1", media_pk)
        return self._row_to_media(row)

    async def find_by_type(self, media_type: MediaType) -> List[MediaItem]:
        rows = await self.db.fetch_all(
            MEDIA_SELECT + " WHERE m.type = $1 ORDER BY m.created_at DESC, m.id DESC",
            MediaType(media_type).value
        )
        return [self._row_to_media(row) for row in rows]

    async def find_by_category(self, category: str) -> List[MediaItem]:
        rows = await self.db.fetch_all(
            MEDIA_SELECT + " WHERE LOWER(m.category) = LOWER($1) ORDER BY m.created_at DESC, m.id DESC",
            category
        )
        return [self._row_to_media(row) for row in rows]

    async def find_by_user_id(self, user_id: str) -> List[MediaItem]:
        user_pk = _to_int(user_id)
        if user_pk is None:
            return []
        rows = await self.db.fetch_all(
            MEDIA_SELECT + " WHERE m.user_id = $1 ORDER BY m.created_at DESC, m.id DESC",
            user_pk
        )
        return [self._row_to_media(row) for row in rows]

    async def find_by_ids(self, media_ids: Iterable[str]) -> List[MediaItem]:
        ids = [pk for pk in (_to_int(media_id) for media_id in media_ids) if pk is not None]
        if not ids:
            return []
        rows = await self.db.fetch_all(
            MEDIA_SELECT + " WHERE m.id = ANY($1::int[]) ORDER BY m.created_at DESC, m.id DESC",
            ids
        )
        return [self._row_to_media(row) for row in rows]

    async def find_recent(self, limit: int) -> List[MediaItem]:
        rows = await self.db.fetch_all(
            MEDIA_SELECT + " ORDER BY m.created_at DESC, m.id DESC LIMIT $1",
            limit
        )
        return [self._row_to_media(row) for row in rows]

    async def create(self, item: MediaItem) -> Optional[MediaItem]:
        user_pk = _to_int(item.user_id)
        if user_pk is None:
            return None
        try:
            row = await self.db.fetch_one(
                """
                INSERT INTO media (title, url, type, category, thumbnail_url, user_id, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, COALESCE($7, NOW()))
                RETURNING id
                """,
                item.title,
                item.url,
                item.type.value,
                item.category,
                item.thumbnail,
                user_pk,
                item.created_at
            )
        except asyncpg.ForeignKeyViolationError:
            logger.warning(f"Cannot add media for unknown user {item.user_id}")
            return None
        return await self.find_by_id(row["id"])

    async def update(self, media_id: str, updates: Dict[str, Any]) -> Optional[MediaItem]:
        media_pk = _to_int(media_id)
        if media_pk is None:
            return None

        # Build dynamic update query from whitelisted columns
        update_fields = []
        values = []
        param_count = 1

        for field, value in updates.items():
            column = self._UPDATABLE_COLUMNS.get(field)
            if column is None:
                continue
            if isinstance(value, MediaType):
                value = value.value
            update_fields.append(f"{column} = ${param_count}")
            values.append(value)
            param_count += 1

        if not update_fields:
            return await self.find_by_id(media_id)

        values.append(media_pk)
        row = await self.db.fetch_one(
            f"""
            UPDATE media
            SET {", ".join(update_fields)}
            WHERE id = ${param_count}
            RETURNING id
            """,
            *values
        )
        if not row:
            return None
        return await self.find_by_id(row["id"])

    async def delete(self, media_id: str) -> bool:
        media_pk = _to_int(media_id)
        if media_pk is None:
            return False
        status = await self.db.execute("DELETE FROM media WHERE id = $1", media_pk)
        return _affected_rows(status) > 0


class CommentRepository(ICommentRepository):
    """Comment repository implementation using PostgreSQL"""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def _row_to_comment(self, row: Optional[asyncpg.Record]) -> Optional[Comment]:
        """Convert database row to Comment model"""
        if not row:
            return None
        data = dict(row)
        return Comment(
            id=str(data["id"]),
            media_id=str(data["media_id"]),
            user_id=str(data["user_id"]),
            user_name=data.get("user_name") or "",
            text=data["text"],
            user_avatar=data.get("user_avatar"),
            created_at=data.get("created_at"),
        )

    async def find_all(self) -> List[Comment]:
        rows = await self.db.fetch_all(COMMENT_SELECT + " ORDER BY c.created_at DESC, c.id DESC")
        return [self._row_to_comment(row) for row in rows]

    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        comment_pk = _to_int(comment_id)
        if comment_pk is None:
            return None
        row = await self.db.fetch_one(COMMENT_SELECT + " WHERE c.id = $1", comment_pk)
        return self._row_to_comment(row)

    async def find_by_media_id(self, media_id: str) -> List[Comment]:
        media_pk = _to_int(media_id)
        if media_pk is None:
            return []
        rows = await self.db.fetch_all(
            COMMENT_SELECT + " WHERE c.media_id = $1 ORDER BY c.created_at DESC, c.id DESC",
            media_pk
        )
        return [self._row_to_comment(row) for row in rows]

    async def create(self, comment: Comment) -> Optional[Comment]:
        media_pk = _to_int(comment.media_id)
        user_pk = _to_int(comment.user_id)
        if media_pk is None or user_pk is None:
            return None
        try:
            row = await self.db.fetch_one(
                """
                INSERT INTO comments (media_id, user_id, text, created_at)
                VALUES ($1, $2, $3, COALESCE($4, NOW()))
                RETURNING id
                """,
                media_pk,
                user_pk,
                comment.text,
                comment.created_at
            )
        except asyncpg.ForeignKeyViolationError:
            logger.warning(f"Cannot add comment to media {comment.media_id} for user {comment.user_id}")
            return None
        return await self.find_by_id(row["id"])

    async def delete(self, comment_id: str) -> bool:
        comment_pk = _to_int(comment_id)
        if comment_pk is None:
            return False
        status = await self.db.execute("DELETE FROM comments WHERE id = $1", comment_pk)
        return _affected_rows(status) > 0

    async def delete_by_media_id(self, media_id: str) -> int:
        media_pk = _to_int(media_id)
        if media_pk is None:
            return 0
        status = await self.db.execute("DELETE FROM comments WHERE media_id = $1", media_pk)
        return _affected_rows(status)


class UserRepository(IUserRepository):
    """User repository implementation using PostgreSQL"""

    _UPDATABLE_COLUMNS = {
        "name": "name",
        "email": "email",
        "password_hash": "password",
        "image": "image_url",
    }

    def __init__(self, db: DatabaseConnection):
        self.db = db

    async def _row_to_user(self, row: Optional[asyncpg.Record]) -> Optional[User]:
        """Convert database row to User model, loading favorites and history"""
        if not row:
            return None
        data = dict(row)
        return User(
            id=str(data["id"]),
            name=data["name"],
            email=data["email"],
            password_hash=data.get("password"),
            image=data.get("image_url"),
            favorites=await self._favorites(data["id"]),
            history=await self._history(data["id"]),
            created_at=data.get("created_at"),
        )

    async def _favorites(self, user_pk: int) -> List[str]:
        rows = await self.db.fetch_all(
            "SELECT media_id FROM favorites WHERE user_id = $1 ORDER BY created_at ASC",
            user_pk
        )
        return [str(row["media_id"]) for row in rows]

    async def _history(self, user_pk: int) -> List[str]:
        rows = await self.db.fetch_all(
            "SELECT media_id FROM history WHERE user_id = $1 ORDER BY viewed_at DESC",
            user_pk
        )
        return [str(row["media_id"]) for row in rows]

    async def _exists(self, user_pk: int) -> bool:
        row = await self.db.fetch_one("SELECT id FROM users WHERE id = $1", user_pk)
        return row is not None

    async def find_all(self) -> List[User]:
        rows = await self.db.fetch_all(
            "SELECT id, name, email, password, image_url, created_at FROM users ORDER BY id ASC"
        )
        return [await self._row_to_user(row) for row in rows]

    async def find_by_id(self, user_id: str) -> Optional[User]:
        user_pk = _to_int(user_id)
        if user_pk is None:
            return None
        row = await self.db.fetch_one(
            "SELECT id, name, email, password, image_url, created_at FROM users WHERE id = $1",
            user_pk
        )
        return await self._row_to_user(row)

    async def find_by_email(self, email: str) -> Optional[User]:
        row = await self.db.fetch_one(
            """
            SELECT id, name, email, password, image_url, created_at
            FROM users
            WHERE LOWER(email) = LOWER($1)
            """,
            email.strip()
        )
        return await self._row_to_user(row)

    async def create(self, user: User) -> Optional[User]:
        try:
            row = await self.db.fetch_one(
                """
                INSERT INTO users (name, email, password, image_url, created_at)
                VALUES ($1, $2, $3, $4, COALESCE($5, NOW()))
                RETURNING id, name, email, password, image_url, created_at
                """,
                user.name,
                user.email,
                user.password_hash,
                user.image,
                user.created_at
            )
        except asyncpg.UniqueViolationError:
            logger.info(f"Email {user.email} already registered")
            return None
        return await self._row_to_user(row)

    async def update(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        user_pk = _to_int(user_id)
        if user_pk is None:
            return None

        update_fields = []
        values = []
        param_count = 1

        for field, value in updates.items():
            column = self._UPDATABLE_COLUMNS.get(field)
            if column is None:
                continue
            update_fields.append(f"{column} = ${param_count}")
            values.append(value)
            param_count += 1

        if not update_fields:
            return await self.find_by_id(user_id)

        values.append(user_pk)
        try:
            row = await self.db.fetch_one(
                f"""
                UPDATE users
                SET {", ".join(update_fields)}
                WHERE id = ${param_count}
                RETURNING id, name, email, password, image_url, created_at
                """,
                *values
            )
        except asyncpg.UniqueViolationError:
            logger.info(f"Cannot update user {user_id}: email already registered")
            return None
        return await self._row_to_user(row)

    async def add_favorite(self, user_id: str, media_id: str) -> Optional[List[str]]:
        user_pk = _to_int(user_id)
        if user_pk is None or not await self._exists(user_pk):
            return None
        media_pk = _to_int(media_id)
        if media_pk is not None:
            try:
                await self.db.execute(
                    """
                    INSERT INTO favorites (user_id, media_id)
                    VALUES ($1, $2)
                    ON CONFLICT (user_id, media_id) DO NOTHING
                    """,
                    user_pk,
                    media_pk
                )
            except asyncpg.ForeignKeyViolationError:
                logger.warning(f"Cannot favorite unknown media {media_id}")
        return await self._favorites(user_pk)

    async def remove_favorite(self, user_id: str, media_id: str) -> Optional[List[str]]:
        user_pk = _to_int(user_id)
        if user_pk is None or not await self._exists(user_pk):
            return None
        media_pk = _to_int(media_id)
        if media_pk is not None:
            await self.db.execute(
                "DELETE FROM favorites WHERE user_id = $1 AND media_id = $2",
                user_pk,
                media_pk
            )
        return await self._favorites(user_pk)

    async def push_history(self, user_id: str, media_id: str, limit: int) -> Optional[List[str]]:
        user_pk = _to_int(user_id)
        if user_pk is None or not await self._exists(user_pk):
            return None
        media_pk = _to_int(media_id)
        if media_pk is not None:
            try:
                await self.db.execute(
                    """
                    INSERT INTO history (user_id, media_id, viewed_at)
                    VALUES ($1, $2, clock_timestamp())
                    ON CONFLICT (user_id, media_id) DO UPDATE SET viewed_at = clock_timestamp()
                    """,
                    user_pk,
                    media_pk
                )
            except asyncpg.ForeignKeyViolationError:
                logger.warning(f"Cannot record unknown media {media_id} in history")
            # Keep only the newest entries
            await self.db.execute(
                """
                DELETE FROM history
                WHERE user_id = $1 AND media_id NOT IN (
                    SELECT media_id FROM history
                    WHERE user_id = $1
                    ORDER BY viewed_at DESC
                    LIMIT $2
                )
                """,
                user_pk,
                limit
            )
        return await self._history(user_pk)

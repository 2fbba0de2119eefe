"""
Repository implementations over the key-value storage facade

Each repository owns one collection key holding a JSON array. Every
operation reads the whole collection, scans it linearly and, for
mutations, writes the whole collection back. There is no locking: the
store assumes a single writer, and concurrent writers would overwrite
each other's changes.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from ...domain.models import (
    Comment, MediaItem, MediaType, User,
    format_timestamp, parse_timestamp,
)
from ...domain.repositories import (
    ICommentRepository, IMediaRepository, IStorage, IUserRepository,
)
from ..storage import StorageKeys

logger = logging.getLogger(__name__)


def _sort_key(created_at):
    return created_at.timestamp() if created_at else float("-inf")


class KeyValueCollection:
    """A JSON array stored under a single key"""

    key: str = ""

    def __init__(self, storage: IStorage):
        self.storage = storage

    def _load(self) -> List[Dict[str, Any]]:
        data = self.storage.get(self.key)
        if not isinstance(data, list):
            return []
        return [record for record in data if isinstance(record, dict)]

    def _save(self, records: List[Dict[str, Any]]) -> bool:
        return self.storage.set(self.key, records)


class KeyValueMediaRepository(KeyValueCollection, IMediaRepository):
    """Media repository implementation over the storage facade"""

    key = StorageKeys.MEDIA

    _FIELD_TO_RECORD = {
        "title": "title",
        "url": "url",
        "type": "type",
        "category": "category",
        "thumbnail": "thumbnail",
        "user_name": "userName",
    }

    def _record_to_media(self, record: Dict[str, Any]) -> Optional[MediaItem]:
        """Convert stored record to MediaItem model"""
        try:
            media_type = MediaType(record.get("type"))
        except ValueError:
            logger.warning(f"Skipping media {record.get('id')} with unknown type {record.get('type')!r}")
            return None

        return MediaItem(
            id=str(record.get("id")),
            title=record.get("title") or "",
            url=record.get("url") or "",
            type=media_type,
            category=record.get("category") or "",
            user_id=str(record.get("userId")),
            thumbnail=record.get("thumbnail") or None,
            created_at=parse_timestamp(record.get("createdAt")),
            user_name=record.get("userName"),
        )

    def _media_to_record(self, item: MediaItem) -> Dict[str, Any]:
        """Convert MediaItem model to stored record"""
        record = {
            "id": item.id,
            "title": item.title,
            "url": item.url,
            "type": item.type.value,
            "category": item.category,
            "createdAt": format_timestamp(item.created_at),
            "userId": item.user_id,
        }
        if item.thumbnail:
            record["thumbnail"] = item.thumbnail
        if item.user_name:
            record["userName"] = item.user_name
        return record

    def _items(self) -> List[MediaItem]:
        items = (self._record_to_media(record) for record in self._load())
        return [item for item in items if item is not None]

    async def find_all(self) -> List[MediaItem]:
        return self._items()

    async def find_by_id(self, media_id: str) -> Optional[MediaItem]:
        for item in self._items():
            if item.id == str(media_id):
                return item
        return None

    async def find_by_type(self, media_type: MediaType) -> List[MediaItem]:
        return [item for item in self._items() if item.type == media_type]

    async def find_by_category(self, category: str) -> List[MediaItem]:
        wanted = category.lower()
        return [item for item in self._items() if item.category.lower() == wanted]

    async def find_by_user_id(self, user_id: str) -> List[MediaItem]:
        return [item for item in self._items() if item.user_id == str(user_id)]

    async def find_by_ids(self, media_ids: Iterable[str]) -> List[MediaItem]:
        wanted = {str(media_id) for media_id in media_ids}
        return [item for item in self._items() if item.id in wanted]

    async def find_recent(self, limit: int) -> List[MediaItem]:
        items = sorted(self._items(), key=lambda item: _sort_key(item.created_at), reverse=True)
        return items[:limit]

    async def create(self, item: MediaItem) -> Optional[MediaItem]:
        records = self._load()
        if not self._save([self._media_to_record(item)] + records):
            return None
        return item

    async def update(self, media_id: str, updates: Dict[str, Any]) -> Optional[MediaItem]:
        records = self._load()
        for index, record in enumerate(records):
            if str(record.get("id")) != str(media_id):
                continue

            updated = dict(record)
            for field, value in updates.items():
                if field not in self._FIELD_TO_RECORD:
                    continue
                if isinstance(value, MediaType):
                    value = value.value
                updated[self._FIELD_TO_RECORD[field]] = value

            records[index] = updated
            if not self._save(records):
                return None
            return self._record_to_media(updated)
        return None

    async def delete(self, media_id: str) -> bool:
        records = self._load()
        remaining = [record for record in records if str(record.get("id")) != str(media_id)]
        if len(remaining) == len(records):
            return False
        return self._save(remaining)


class KeyValueCommentRepository(KeyValueCollection, ICommentRepository):
    """Comment repository implementation over the storage facade"""

    key = StorageKeys.COMMENTS

    def _record_to_comment(self, record: Dict[str, Any]) -> Comment:
        """Convert stored record to Comment model"""
        return Comment(
            id=str(record.get("id")),
            media_id=str(record.get("mediaId")),
            user_id=str(record.get("userId")),
            user_name=record.get("userName") or "",
            text=record.get("text") or "",
            user_avatar=record.get("userAvatar") or None,
            created_at=parse_timestamp(record.get("createdAt")),
        )

    def _comment_to_record(self, comment: Comment) -> Dict[str, Any]:
        """Convert Comment model to stored record"""
        record = {
            "id": comment.id,
            "mediaId": comment.media_id,
            "userId": comment.user_id,
            "userName": comment.user_name,
            "text": comment.text,
            "createdAt": format_timestamp(comment.created_at),
        }
        if comment.user_avatar:
            record["userAvatar"] = comment.user_avatar
        return record

    async def find_all(self) -> List[Comment]:
        return [self._record_to_comment(record) for record in self._load()]

    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        for record in self._load():
            if str(record.get("id")) == str(comment_id):
                return self._record_to_comment(record)
        return None

    async def find_by_media_id(self, media_id: str) -> List[Comment]:
        comments = [
            self._record_to_comment(record)
            for record in self._load()
            if str(record.get("mediaId")) == str(media_id)
        ]
        return sorted(comments, key=lambda c: _sort_key(c.created_at), reverse=True)

    async def create(self, comment: Comment) -> Optional[Comment]:
        records = self._load()
        if not self._save([self._comment_to_record(comment)] + records):
            return None
        return comment

    async def delete(self, comment_id: str) -> bool:
        records = self._load()
        remaining = [record for record in records if str(record.get("id")) != str(comment_id)]
        if len(remaining) == len(records):
            return False
        return self._save(remaining)

    async def delete_by_media_id(self, media_id: str) -> int:
        records = self._load()
        remaining = [record for record in records if str(record.get("mediaId")) != str(media_id)]
        removed = len(records) - len(remaining)
        if removed and not self._save(remaining):
            return 0
        return removed


class KeyValueUserRepository(KeyValueCollection, IUserRepository):
    """User repository implementation over the storage facade"""

    key = StorageKeys.USERS

    _FIELD_TO_RECORD = {
        "name": "name",
        "email": "email",
        "password_hash": "password",
        "image": "image",
    }

    def _record_to_user(self, record: Dict[str, Any]) -> User:
        """Convert stored record to User model"""
        return User(
            id=str(record.get("id")),
            name=record.get("name") or "",
            email=record.get("email") or "",
            password_hash=record.get("password"),
            image=record.get("image") or None,
            favorites=[str(media_id) for media_id in record.get("favorites") or []],
            history=[str(media_id) for media_id in record.get("history") or []],
            created_at=parse_timestamp(record.get("createdAt")),
        )

    def _user_to_record(self, user: User) -> Dict[str, Any]:
        """Convert User model to stored record"""
        return {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "password": user.password_hash,
            "image": user.image or "",
            "favorites": list(user.favorites),
            "history": list(user.history),
            "createdAt": format_timestamp(user.created_at),
        }

    def _find_index(self, records: List[Dict[str, Any]], user_id: str) -> int:
        for index, record in enumerate(records):
            if str(record.get("id")) == str(user_id):
                return index
        return -1

    async def find_all(self) -> List[User]:
        return [self._record_to_user(record) for record in self._load()]

    async def find_by_id(self, user_id: str) -> Optional[User]:
        records = self._load()
        index = self._find_index(records, user_id)
        if index == -1:
            return None
        return self._record_to_user(records[index])

    async def find_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for record in self._load():
            if (record.get("email") or "").strip().lower() == wanted:
                return self._record_to_user(record)
        return None

    async def create(self, user: User) -> Optional[User]:
        records = self._load()
        if not self._save(records + [self._user_to_record(user)]):
            return None
        return user

    async def update(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        records = self._load()
        index = self._find_index(records, user_id)
        if index == -1:
            return None

        updated = dict(records[index])
        for field, value in updates.items():
            if field in self._FIELD_TO_RECORD:
                updated[self._FIELD_TO_RECORD[field]] = value

        records[index] = updated
        if not self._save(records):
            return None
        return self._record_to_user(updated)

    def _mutate_list(self, user_id: str, field: str, mutate) -> Optional[List[str]]:
        records = self._load()
        index = self._find_index(records, user_id)
        if index == -1:
            return None

        current = [str(media_id) for media_id in records[index].get(field) or []]
        result = mutate(current)
        if result != current or field not in records[index]:
            records[index] = dict(records[index], **{field: result})
            if not self._save(records):
                return None
        return result

    async def add_favorite(self, user_id: str, media_id: str) -> Optional[List[str]]:
        media_id = str(media_id)
        return self._mutate_list(
            user_id,
            "favorites",
            lambda favorites: favorites if media_id in favorites else favorites + [media_id],
        )

    async def remove_favorite(self, user_id: str, media_id: str) -> Optional[List[str]]:
        media_id = str(media_id)
        return self._mutate_list(
            user_id,
            "favorites",
            lambda favorites: [f for f in favorites if f != media_id],
        )

    async def push_history(self, user_id: str, media_id: str, limit: int) -> Optional[List[str]]:
        media_id = str(media_id)
        return self._mutate_list(
            user_id,
            "history",
            lambda history: ([media_id] + [h for h in history if h != media_id])[:limit],
        )

"""
Repository interfaces - Define contracts for data access
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from .models import Comment, MediaItem, MediaType, User


class IStorage(ABC):
    """
    Synchronous key-value storage facade

    Values are JSON-serialized. Implementations never raise: failures are
    logged and reported as ``None`` (reads) or ``False`` (writes).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Read and deserialize the value stored under key"""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Serialize and store value under key"""
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete key"""
        pass

    @abstractmethod
    def clear(self) -> bool:
        """Delete every key owned by this store"""
        pass

    @abstractmethod
    def get_raw(self, key: str) -> Optional[Any]:
        """Read a key outside the store namespace (legacy data)"""
        pass

    @abstractmethod
    def remove_raw(self, key: str) -> bool:
        """Delete a key outside the store namespace (legacy data)"""
        pass


class IMediaRepository(ABC):
    """Media repository interface"""

    @abstractmethod
    async def find_all(self) -> List[MediaItem]:
        """All media, newest first"""
        pass

    @abstractmethod
    async def find_by_id(self, media_id: str) -> Optional[MediaItem]:
        """Find media by ID"""
        pass

    @abstractmethod
    async def find_by_type(self, media_type: MediaType) -> List[MediaItem]:
        """Find media by type"""
        pass

    @abstractmethod
    async def find_by_category(self, category: str) -> List[MediaItem]:
        """Find media by category (case-insensitive)"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: str) -> List[MediaItem]:
        """Find media uploaded by a user"""
        pass

    @abstractmethod
    async def find_by_ids(self, media_ids: Iterable[str]) -> List[MediaItem]:
        """Find media whose id is in media_ids"""
        pass

    @abstractmethod
    async def find_recent(self, limit: int) -> List[MediaItem]:
        """Most recently created media"""
        pass

    @abstractmethod
    async def create(self, item: MediaItem) -> Optional[MediaItem]:
        """Store a new media item"""
        pass

    @abstractmethod
    async def update(self, media_id: str, updates: Dict[str, Any]) -> Optional[MediaItem]:
        """Merge updates into a media item"""
        pass

    @abstractmethod
    async def delete(self, media_id: str) -> bool:
        """Delete media record"""
        pass


class ICommentRepository(ABC):
    """Comment repository interface"""

    @abstractmethod
    async def find_all(self) -> List[Comment]:
        """All comments, newest first"""
        pass

    @abstractmethod
    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        """Find comment by ID"""
        pass

    @abstractmethod
    async def find_by_media_id(self, media_id: str) -> List[Comment]:
        """Comments on a media item, newest first"""
        pass

    @abstractmethod
    async def create(self, comment: Comment) -> Optional[Comment]:
        """Store a new comment"""
        pass

    @abstractmethod
    async def delete(self, comment_id: str) -> bool:
        """Delete comment record"""
        pass

    @abstractmethod
    async def delete_by_media_id(self, media_id: str) -> int:
        """Delete every comment on a media item"""
        pass


class IUserRepository(ABC):
    """User repository interface"""

    @abstractmethod
    async def find_all(self) -> List[User]:
        """All users"""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find user by ID"""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        """Find user by normalized email"""
        pass

    @abstractmethod
    async def create(self, user: User) -> Optional[User]:
        """Store a new user"""
        pass

    @abstractmethod
    async def update(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        """Update user information"""
        pass

    @abstractmethod
    async def add_favorite(self, user_id: str, media_id: str) -> Optional[List[str]]:
        """Add media to favorites, returning the resulting favorites"""
        pass

    @abstractmethod
    async def remove_favorite(self, user_id: str, media_id: str) -> Optional[List[str]]:
        """Remove media from favorites, returning the resulting favorites"""
        pass

    @abstractmethod
    async def push_history(self, user_id: str, media_id: str, limit: int) -> Optional[List[str]]:
        """Move media to the front of the history, returning the resulting history"""
        pass

"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, List, Optional
from enum import Enum
import threading
import time


class MediaType(str, Enum):
    """Media type enumeration"""
    IMAGE = "image"
    VIDEO = "video"


@dataclass
class MediaItem:
    """Media item domain model"""
    id: str
    title: str
    url: str
    type: MediaType
    category: str
    user_id: str
    thumbnail: Optional[str] = None
    created_at: Optional[datetime] = None
    user_name: Optional[str] = None

    def is_owner(self, user_id: Optional[str]) -> bool:
        """Check if the given user_id is the owner of this media"""
        return user_id is not None and self.user_id == str(user_id)


@dataclass
class Comment:
    """Comment domain model"""
    id: str
    media_id: str
    user_id: str
    user_name: str
    text: str
    user_avatar: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_author(self, user_id: Optional[str]) -> bool:
        """Check if the given user_id wrote this comment"""
        return user_id is not None and self.user_id == str(user_id)


@dataclass
class User:
    """User domain model"""
    id: str
    name: str
    email: str
    password_hash: Optional[str] = None
    image: Optional[str] = None
    favorites: List[str] = field(default_factory=list)
    history: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def is_owner(self, user_id: Optional[str]) -> bool:
        """Check if the given user_id is this user"""
        return user_id is not None and self.id == str(user_id)

    def public(self) -> "User":
        """Copy of the user without credentials"""
        return replace(
            self,
            password_hash=None,
            favorites=list(self.favorites),
            history=list(self.history),
        )


@dataclass
class Session:
    """Authenticated session snapshot"""
    user: User
    remembered: bool = False


@dataclass
class OperationResult:
    """Outcome of a service operation that can fail validation"""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


_id_lock = threading.Lock()
_last_id = 0


def generate_id() -> str:
    """
    Timestamp-based identifier (milliseconds since epoch)

    Ids issued by one process are strictly increasing, so two records
    created within the same millisecond still get distinct ids.
    """
    global _last_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return str(candidate)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp

    Accepts datetimes, ISO-8601 strings (including the trailing ``Z`` written
    by JavaScript) and epoch milliseconds. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp for key-value storage"""
    if value is None:
        return None
    return value.isoformat()

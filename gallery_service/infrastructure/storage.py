"""
Key-value storage facade backends (memory, local files, Redis)
"""
import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterator, Optional
from urllib.parse import quote, unquote

import redis

from ..config import settings
from ..domain.repositories import IStorage

logger = logging.getLogger(__name__)


class StorageKeys:
    """Keys of the persisted collections"""
    MEDIA = "shared_media_db"
    COMMENTS = "shared_comments_db"
    USERS = "users_db"
    SESSION = "user_session"
    REMEMBERED = "user_remembered"
    PROFILE_IMAGES = "profile_images_db"
    SETTINGS = "settings"
    # Lives in the tab-scoped store only
    TAB_SESSION = "auth_session"


DEFAULT_SETTINGS = {"theme": "dark", "view_mode": "grid"}


class BaseStorage(IStorage):
    """JSON (de)serialization and error containment shared by all backends"""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def _prefix(self) -> str:
        return f"{self.namespace}:" if self.namespace else ""

    # Backend primitives operating on already-prefixed keys
    def _load(self, full_key: str) -> Optional[str]:
        raise NotImplementedError

    def _save(self, full_key: str, data: str) -> None:
        raise NotImplementedError

    def _delete(self, full_key: str) -> None:
        raise NotImplementedError

    def _keys(self) -> Iterator[str]:
        raise NotImplementedError

    def _read(self, full_key: str) -> Optional[Any]:
        try:
            data = self._load(full_key)
            if data is None or data == "":
                return None
            return json.loads(data)
        except Exception as e:
            logger.error(f"Error reading storage key {full_key}: {e}")
            return None

    def _remove(self, full_key: str) -> bool:
        try:
            self._delete(full_key)
            return True
        except Exception as e:
            logger.error(f"Error removing storage key {full_key}: {e}")
            return False

    def get(self, key: str) -> Optional[Any]:
        return self._read(self._full_key(key))

    def get_raw(self, key: str) -> Optional[Any]:
        return self._read(key)

    def set(self, key: str, value: Any) -> bool:
        full_key = self._full_key(key)
        try:
            self._save(full_key, json.dumps(value))
            return True
        except Exception as e:
            logger.error(f"Error writing storage key {full_key}: {e}")
            return False

    def remove(self, key: str) -> bool:
        return self._remove(self._full_key(key))

    def remove_raw(self, key: str) -> bool:
        return self._remove(key)

    def clear(self) -> bool:
        prefix = self._prefix()
        try:
            for full_key in list(self._keys()):
                if full_key.startswith(prefix):
                    self._delete(full_key)
            return True
        except Exception as e:
            logger.error(f"Error clearing storage {self.namespace or '<root>'}: {e}")
            return False


class MemoryStorage(BaseStorage):
    """Process-local storage, also used as the tab-scoped session store"""

    def __init__(self, namespace: str = ""):
        super().__init__(namespace)
        self._data: Dict[str, str] = {}

    def _load(self, full_key: str) -> Optional[str]:
        return self._data.get(full_key)

    def _save(self, full_key: str, data: str) -> None:
        self._data[full_key] = data

    def _delete(self, full_key: str) -> None:
        self._data.pop(full_key, None)

    def _keys(self) -> Iterator[str]:
        return iter(self._data.keys())


class FileStorage(BaseStorage):
    """One JSON document per key inside a directory"""

    SUFFIX = ".json"

    def __init__(self, directory: str, namespace: str = ""):
        super().__init__(namespace)
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, full_key: str) -> str:
        return os.path.join(self.directory, quote(full_key, safe="") + self.SUFFIX)

    def _load(self, full_key: str) -> Optional[str]:
        path = self._path(full_key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def _save(self, full_key: str, data: str) -> None:
        # Write to a temp file first so a crash never leaves half a collection
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, self._path(full_key))
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _delete(self, full_key: str) -> None:
        path = self._path(full_key)
        if os.path.exists(path):
            os.remove(path)

    def _keys(self) -> Iterator[str]:
        for name in os.listdir(self.directory):
            if name.endswith(self.SUFFIX):
                yield unquote(name[:-len(self.SUFFIX)])


class RedisStorage(BaseStorage):
    """Redis-backed storage"""

    def __init__(self, url: str, namespace: str = "", client: Optional[redis.Redis] = None):
        super().__init__(namespace)
        self.client = client or redis.Redis.from_url(url, encoding="utf-8", decode_responses=True)

    def _load(self, full_key: str) -> Optional[str]:
        return self.client.get(full_key)

    def _save(self, full_key: str, data: str) -> None:
        self.client.set(full_key, data)

    def _delete(self, full_key: str) -> None:
        self.client.delete(full_key)

    def _keys(self) -> Iterator[str]:
        return self.client.scan_iter(match=f"{self._prefix()}*")


def create_storage(backend: Optional[str] = None) -> IStorage:
    """Build the durable storage configured in settings"""
    backend = backend or settings.STORAGE_BACKEND

    if backend == "memory":
        storage = MemoryStorage(settings.STORAGE_NAMESPACE)
    elif backend == "file":
        storage = FileStorage(settings.DATA_DIR, settings.STORAGE_NAMESPACE)
    elif backend == "redis":
        storage = RedisStorage(settings.REDIS_URL, settings.STORAGE_NAMESPACE)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(f"Using {backend} storage (namespace {settings.STORAGE_NAMESPACE})")
    return storage


def initialize_storage(storage: IStorage) -> None:
    """Create empty collections for every key that does not exist yet"""
    if storage.get(StorageKeys.USERS) is None:
        storage.set(StorageKeys.USERS, [])

    if storage.get(StorageKeys.MEDIA) is None:
        storage.set(StorageKeys.MEDIA, [])

    if storage.get(StorageKeys.COMMENTS) is None:
        storage.set(StorageKeys.COMMENTS, [])

    if storage.get(StorageKeys.PROFILE_IMAGES) is None:
        storage.set(StorageKeys.PROFILE_IMAGES, {})

    if storage.get(StorageKeys.SETTINGS) is None:
        storage.set(StorageKeys.SETTINGS, dict(DEFAULT_SETTINGS))

    logger.info("Storage initialized")

"""
Session persistence for the authenticated user

A session is a snapshot of the user's public fields kept in durable
storage. Remembered sessions are valid on their own; ephemeral sessions
also need a marker in the tab-scoped store, so losing that store (a new
tab, a restarted process) ends them.

Each client gets its own session when the manager is given a client id;
without one the unscoped keys are used.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from ..domain.models import Session, User
from ..domain.repositories import IStorage
from ..infrastructure.storage import StorageKeys

logger = logging.getLogger(__name__)


def user_to_snapshot(user: User) -> Dict[str, Any]:
    """Public fields persisted in the session"""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image or "",
        "favorites": list(user.favorites),
        "history": list(user.history),
    }


def snapshot_to_user(snapshot: Any) -> Optional[User]:
    if not isinstance(snapshot, dict) or not snapshot.get("id"):
        return None
    return User(
        id=str(snapshot["id"]),
        name=snapshot.get("name") or "",
        email=snapshot.get("email") or "",
        image=snapshot.get("image") or None,
        favorites=[str(media_id) for media_id in snapshot.get("favorites") or []],
        history=[str(media_id) for media_id in snapshot.get("history") or []],
    )


class SessionManager:
    """Stores, restores and clears the session of one client"""

    def __init__(self, storage: IStorage, tab_storage: IStorage, client_id: str = ""):
        self.storage = storage
        self.tab_storage = tab_storage
        self.client_id = client_id

    def _key(self, key: str) -> str:
        return f"{key}:{self.client_id}" if self.client_id else key

    def save(self, user: User, remembered: bool) -> bool:
        """Persist the session snapshot"""
        saved = self.storage.set(self._key(StorageKeys.SESSION), user_to_snapshot(user))
        if remembered:
            saved = self.storage.set(self._key(StorageKeys.REMEMBERED), True) and saved
        else:
            self.storage.remove(self._key(StorageKeys.REMEMBERED))
            saved = self.tab_storage.set(self._key(StorageKeys.TAB_SESSION), True) and saved

        if not saved:
            logger.error(f"Could not persist session for user {user.id}")
        return saved

    def get(self) -> Optional[Session]:
        """
        Restore the current session

        Returns:
            Session, or None when anonymous
        """
        snapshot = self.storage.get(self._key(StorageKeys.SESSION))
        remembered = self.storage.get(self._key(StorageKeys.REMEMBERED)) is True

        if snapshot is None:
            return None

        if not remembered and not self.tab_storage.get(self._key(StorageKeys.TAB_SESSION)):
            return None

        user = snapshot_to_user(snapshot)
        if user is None:
            logger.warning("Discarding unreadable session snapshot")
            self.clear()
            return None

        return Session(user=user, remembered=remembered)

    def clear(self) -> None:
        """End the session"""
        self.storage.remove(self._key(StorageKeys.SESSION))
        self.storage.remove(self._key(StorageKeys.REMEMBERED))
        self.tab_storage.remove(self._key(StorageKeys.TAB_SESSION))

    def refresh(self, user_id: str, **changes) -> bool:
        """Apply changes to the snapshot if user_id owns the current session"""
        session = self.get()
        if session is None or session.user.id != str(user_id):
            return False
        return self.save(replace(session.user, **changes), session.remembered)

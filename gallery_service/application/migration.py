"""
Data migration

Two one-shot jobs: copying data written under the old unprefixed keys into
the namespaced keys, and copying a key-value dataset into the relational
backend.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ..config import settings
from ..domain.models import OperationResult, generate_id
from ..domain.repositories import (
    ICommentRepository, IMediaRepository, IStorage, IUserRepository,
)
from ..infrastructure.auth import hash_password, is_password_hash
from ..infrastructure.storage import DEFAULT_SETTINGS, StorageKeys

logger = logging.getLogger(__name__)

MIGRATION_FLAG = "migration_done"

# legacy key -> (namespaced key, result counter)
LEGACY_COLLECTIONS = {
    "mediaItems": (StorageKeys.MEDIA, "media"),
    "comments": (StorageKeys.COMMENTS, "comments"),
    "auth_users": (StorageKeys.USERS, "users"),
}
LEGACY_SESSION = "auth_user"
LEGACY_REMEMBERED = "auth_remembered"


def _is_empty(value: Any) -> bool:
    return value is None or value == [] or value == {}


def _upgrade_user_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Hash a plaintext password and normalize the email of a legacy user"""
    upgraded = dict(record)
    upgraded["email"] = (record.get("email") or "").strip().lower()
    password = record.get("password")
    if password and not is_password_hash(password):
        upgraded["password"] = hash_password(str(password))
    upgraded.setdefault("favorites", [])
    upgraded.setdefault("history", [])
    return upgraded


def migrate_legacy_keys(storage: IStorage) -> OperationResult:
    """
    Copy legacy unprefixed keys into the namespaced keys

    A namespaced key that already holds data is never overwritten. Legacy
    keys are removed once copied, and the migration is flagged as done in
    the settings so later calls do nothing.

    Returns:
        OperationResult carrying the number of records copied per collection
    """
    app_settings = storage.get(StorageKeys.SETTINGS)
    if not isinstance(app_settings, dict):
        app_settings = dict(DEFAULT_SETTINGS)

    counts = {"media": 0, "comments": 0, "users": 0, "session": 0}
    if app_settings.get(MIGRATION_FLAG):
        return OperationResult.ok(counts)

    for legacy_key, (key, counter) in LEGACY_COLLECTIONS.items():
        legacy = storage.get_raw(legacy_key)
        if not isinstance(legacy, list) or not legacy:
            continue

        if not _is_empty(storage.get(key)):
            logger.info(f"Keeping existing {key}; legacy {legacy_key} ignored")
            continue

        records = [record for record in legacy if isinstance(record, dict)]
        if key == StorageKeys.USERS:
            records = [_upgrade_user_record(record) for record in records]

        if not storage.set(key, records):
            return OperationResult.fail(f"Could not migrate {legacy_key}")
        storage.remove_raw(legacy_key)
        counts[counter] = len(records)
        logger.info(f"Migrated {len(records)} records from {legacy_key} to {key}")

    snapshot = storage.get_raw(LEGACY_SESSION)
    if isinstance(snapshot, dict) and _is_empty(storage.get(StorageKeys.SESSION)):
        snapshot = {k: v for k, v in snapshot.items() if k != "password"}
        if "email" in snapshot:
            snapshot["email"] = (snapshot["email"] or "").strip().lower()
        if storage.set(StorageKeys.SESSION, snapshot):
            counts["session"] = 1
            if storage.get_raw(LEGACY_REMEMBERED) is True:
                storage.set(StorageKeys.REMEMBERED, True)
    storage.remove_raw(LEGACY_SESSION)
    storage.remove_raw(LEGACY_REMEMBERED)

    app_settings[MIGRATION_FLAG] = True
    if not storage.set(StorageKeys.SETTINGS, app_settings):
        return OperationResult.fail("Could not record migration")

    return OperationResult.ok(counts)


async def migrate_to_relational(
    source_users: IUserRepository,
    source_media: IMediaRepository,
    source_comments: ICommentRepository,
    target_users: IUserRepository,
    target_media: IMediaRepository,
    target_comments: ICommentRepository
) -> OperationResult:
    """
    Copy users, media, comments, favorites and history between backends

    The target assigns new ids. Media whose owner was not migrated is
    attributed to the first migrated user; comments on media that was not
    migrated are dropped.

    Returns:
        OperationResult carrying the number of records copied per kind
    """
    user_map: Dict[str, str] = {}
    media_map: Dict[str, str] = {}
    counts = {"users": 0, "media": 0, "comments": 0, "favorites": 0, "history": 0}

    users = await source_users.find_all()
    for user in users:
        if not user.password_hash:
            logger.warning(f"Skipping user {user.id} without a password")
            continue
        created = await target_users.create(replace(
            user,
            id=generate_id(),
            email=user.email.strip().lower(),
            favorites=[],
            history=[],
        ))
        if created is None:
            logger.warning(f"Could not migrate user {user.id}")
            continue
        user_map[user.id] = created.id
        counts["users"] += 1

    if not user_map:
        return OperationResult.fail("No users to migrate")
    fallback_user: Optional[str] = next(iter(user_map.values()))

    # Oldest first so the target keeps the newest-first order
    for item in reversed(await source_media.find_all()):
        created = await target_media.create(replace(
            item,
            id=generate_id(),
            title=item.title or settings.DEFAULT_TITLE,
            category=(item.category or "").lower(),
            user_id=user_map.get(item.user_id, fallback_user),
        ))
        if created is None:
            logger.warning(f"Could not migrate media {item.id}")
            continue
        media_map[item.id] = created.id
        counts["media"] += 1

    for comment in reversed(await source_comments.find_all()):
        media_id = media_map.get(comment.media_id)
        if media_id is None:
            continue
        created = await target_comments.create(replace(
            comment,
            id=generate_id(),
            media_id=media_id,
            user_id=user_map.get(comment.user_id, fallback_user),
        ))
        if created is not None:
            counts["comments"] += 1

    for user in users:
        new_user_id = user_map.get(user.id)
        if new_user_id is None:
            continue

        for old_media_id in user.favorites:
            new_media_id = media_map.get(old_media_id)
            if new_media_id and await target_users.add_favorite(new_user_id, new_media_id) is not None:
                counts["favorites"] += 1

        # History is newest first; replay oldest first so the order survives
        history: List[str] = []
        for old_media_id in reversed(user.history):
            new_media_id = media_map.get(old_media_id)
            if new_media_id:
                history = await target_users.push_history(
                    new_user_id, new_media_id, settings.HISTORY_LIMIT
                ) or history
        counts["history"] += len(history)

    logger.info(f"Migrated dataset to relational backend: {counts}")
    return OperationResult.ok(counts)

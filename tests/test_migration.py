"""
Tests for legacy key migration and backend-to-backend migration
"""
import json

from gallery_service.application.migration import migrate_legacy_keys, migrate_to_relational
from gallery_service.domain.models import Comment, User, utcnow
from gallery_service.infrastructure.auth import hash_password, is_password_hash
from gallery_service.infrastructure.keyvalue.repositories import (
    KeyValueCommentRepository, KeyValueMediaRepository, KeyValueUserRepository,
)
from gallery_service.infrastructure.storage import MemoryStorage, StorageKeys, initialize_storage

from conftest import make_item

LEGACY_USERS = [
    {"id": "1", "name": "Ana", "email": "Ana@Example.com", "password": "secret1",
     "favorites": ["10"], "history": ["10"]},
]
LEGACY_MEDIA = [
    {"id": "10", "title": "Sunset", "url": "https://example.com/s.jpg", "type": "image",
     "category": "nature", "createdAt": "2023-06-01T12:00:00.000Z", "userId": "1"},
]


def seed_legacy(storage):
    storage._data["auth_users"] = json.dumps(LEGACY_USERS)
    storage._data["mediaItems"] = json.dumps(LEGACY_MEDIA)
    storage._data["comments"] = json.dumps([])
    storage._data["auth_user"] = json.dumps({"id": "1", "name": "Ana", "email": "Ana@Example.com", "password": "secret1"})
    storage._data["auth_remembered"] = "true"


async def test_legacy_keys_are_copied(storage, user_service):
    seed_legacy(storage)

    result = migrate_legacy_keys(storage)

    assert result.success
    assert result.data == {"media": 1, "comments": 0, "users": 1, "session": 1}

    users = storage.get(StorageKeys.USERS)
    assert users[0]["email"] == "ana@example.com"
    assert is_password_hash(users[0]["password"])
    assert storage.get(StorageKeys.MEDIA) == LEGACY_MEDIA

    snapshot = storage.get(StorageKeys.SESSION)
    assert "password" not in snapshot
    assert storage.get(StorageKeys.REMEMBERED) is True

    assert storage.get_raw("auth_users") is None
    assert storage.get_raw("auth_user") is None
    assert storage.get(StorageKeys.SETTINGS)["migration_done"] is True

    assert (await user_service.login("ana@example.com", "secret1")).id == "1"


def test_existing_data_is_not_overwritten(storage):
    seed_legacy(storage)
    storage.set(StorageKeys.MEDIA, [{"id": "99"}])

    result = migrate_legacy_keys(storage)

    assert result.data["media"] == 0
    assert storage.get(StorageKeys.MEDIA) == [{"id": "99"}]
    assert storage.get_raw("mediaItems") == LEGACY_MEDIA


def test_migration_runs_once(storage):
    migrate_legacy_keys(storage)
    seed_legacy(storage)

    result = migrate_legacy_keys(storage)

    assert result.data == {"media": 0, "comments": 0, "users": 0, "session": 0}
    assert storage.get(StorageKeys.USERS) == []


def test_nothing_to_migrate(storage):
    result = migrate_legacy_keys(storage)
    assert result.success
    assert sum(result.data.values()) == 0


def _repos(storage):
    return (
        KeyValueUserRepository(storage),
        KeyValueMediaRepository(storage),
        KeyValueCommentRepository(storage),
    )


async def test_migrate_between_backends_remaps_ids():
    source = MemoryStorage("source")
    target = MemoryStorage("target")
    initialize_storage(source)
    initialize_storage(target)
    users, media, comments = _repos(source)

    await users.create(User(id="u1", name="Ana", email="ana@example.com", password_hash=hash_password("secret1")))
    await users.create(User(id="u2", name="NoPass", email="nopass@example.com"))
    first = await media.create(make_item("u1", id="m1", created_at=utcnow()))
    orphan = await media.create(make_item("u2", id="m2", title="Orphan", created_at=utcnow()))
    await comments.create(Comment(id="c1", media_id="m1", user_id="u1", user_name="Ana", text="hi", created_at=utcnow()))
    await comments.create(Comment(id="c2", media_id="gone", user_id="u1", user_name="Ana", text="lost", created_at=utcnow()))
    await users.add_favorite("u1", "m1")
    await users.push_history("u1", "m1", 100)
    await users.push_history("u1", "m2", 100)

    result = await migrate_to_relational(users, media, comments, *_repos(target))

    assert result.success
    assert result.data == {"users": 1, "media": 2, "comments": 1, "favorites": 1, "history": 2}

    target_users, target_media, target_comments = _repos(target)
    [ana] = await target_users.find_all()
    assert ana.id != "u1"

    migrated_media = await target_media.find_all()
    assert [m.title for m in migrated_media] == [orphan.title, first.title]
    assert {m.user_id for m in migrated_media} == {ana.id}
    new_ids = [m.id for m in migrated_media]
    assert "m1" not in new_ids and "m2" not in new_ids

    [comment] = await target_comments.find_all()
    assert comment.media_id == migrated_media[1].id
    assert comment.user_id == ana.id

    assert ana.favorites == [migrated_media[1].id]
    assert ana.history == [migrated_media[0].id, migrated_media[1].id]


async def test_migrate_without_users_fails():
    source = MemoryStorage("source")
    target = MemoryStorage("target")
    initialize_storage(source)
    initialize_storage(target)

    result = await migrate_to_relational(*_repos(source), *_repos(target))
    assert not result.success


async def test_comments_of_unmigrated_authors_go_to_fallback_user():
    source = MemoryStorage("source")
    target = MemoryStorage("target")
    initialize_storage(source)
    initialize_storage(target)
    users, media, comments = _repos(source)

    await users.create(User(id="u1", name="Ana", email="ana@example.com", password_hash=hash_password("secret1")))
    await users.create(User(id="u2", name="NoPass", email="nopass@example.com"))
    await media.create(make_item("u1", id="m1", created_at=utcnow()))
    await comments.create(Comment(id="c1", media_id="m1", user_id="u2", user_name="NoPass", text="hi", created_at=utcnow()))

    result = await migrate_to_relational(users, media, comments, *_repos(target))

    assert result.data["comments"] == 1
    [ana] = await _repos(target)[0].find_all()
    [comment] = await _repos(target)[2].find_all()
    assert comment.user_id == ana.id

"""
Tests for the PostgreSQL repositories against a recording connection
"""
from datetime import datetime, timezone

from gallery_service.domain.models import Comment, MediaType
from gallery_service.infrastructure.database.repositories import (
    CommentRepository, MediaRepository, UserRepository,
)

from conftest import make_item

CREATED = datetime(2024, 3, 1, tzinfo=timezone.utc)

MEDIA_ROW = {
    "id": 5, "title": "Sunset", "url": "https://example.com/s.jpg", "type": "image",
    "category": "nature", "thumbnail_url": None, "user_id": 2, "created_at": CREATED,
    "user_name": "Ana",
}
USER_ROW = {
    "id": 2, "name": "Ana", "email": "ana@example.com", "password": "$2b$04$hash",
    "image_url": None, "created_at": CREATED,
}


class FakeDatabaseConnection:
    """Records queries and replays queued results"""

    def __init__(self, one=None, many=None, status="DELETE 1"):
        self.calls = []
        self.one = list(one or [])
        self.many = list(many or [])
        self.status = status

    async def fetch_one(self, query, *args):
        self.calls.append((query, args))
        return self.one.pop(0) if self.one else None

    async def fetch_all(self, query, *args):
        self.calls.append((query, args))
        return self.many.pop(0) if self.many else []

    async def execute(self, query, *args):
        self.calls.append((query, args))
        return self.status


async def test_non_numeric_id_is_not_found():
    db = FakeDatabaseConnection()
    repo = MediaRepository(db)

    assert await repo.find_by_id("abc") is None
    assert await repo.delete("abc") is False
    assert db.calls == []


async def test_find_by_id_maps_row():
    db = FakeDatabaseConnection(one=[MEDIA_ROW])

    item = await MediaRepository(db).find_by_id("5")

    assert item.id == "5"
    assert item.user_id == "2"
    assert item.type == MediaType.IMAGE
    assert item.user_name == "Ana"
    assert db.calls[0][1] == (5,)


async def test_find_by_category_is_parameterized():
    db = FakeDatabaseConnection(many=[[MEDIA_ROW]])

    items = await MediaRepository(db).find_by_category("Nature'; DROP TABLE media; --")

    assert len(items) == 1
    query, args = db.calls[0]
    assert "LOWER(m.category) = LOWER($1)" in query
    assert args == ("Nature'; DROP TABLE media; --",)


async def test_update_uses_whitelisted_columns():
    db = FakeDatabaseConnection(one=[{"id": 5}, MEDIA_ROW])

    await MediaRepository(db).update("5", {"title": "New", "thumbnail": "t.jpg", "user_id": "9"})

    query, args = db.calls[0]
    assert "title = $1" in query
    assert "thumbnail_url = $2" in query
    assert "user_id" not in query.split("WHERE")[0]
    assert args == ("New", "t.jpg", 5)


async def test_create_returns_stored_item():
    db = FakeDatabaseConnection(one=[{"id": 5}, MEDIA_ROW])

    item = await MediaRepository(db).create(make_item("2", type=MediaType.IMAGE))

    assert item.id == "5"
    insert_args = db.calls[0][1]
    assert insert_args[2] == "image"
    assert insert_args[5] == 2


async def test_delete_reports_affected_rows():
    assert await MediaRepository(FakeDatabaseConnection(status="DELETE 1")).delete("5") is True
    assert await MediaRepository(FakeDatabaseConnection(status="DELETE 0")).delete("5") is False


async def test_delete_comments_of_media():
    db = FakeDatabaseConnection(status="DELETE 3")
    assert await CommentRepository(db).delete_by_media_id("5") == 3
    assert db.calls[0][1] == (5,)


async def test_comment_create_requires_numeric_ids():
    db = FakeDatabaseConnection()
    comment = Comment(id="", media_id="x", user_id="2", user_name="Ana", text="hi")

    assert await CommentRepository(db).create(comment) is None
    assert db.calls == []


async def test_user_loaded_with_favorites_and_history():
    db = FakeDatabaseConnection(
        one=[USER_ROW],
        many=[[{"media_id": 5}, {"media_id": 7}], [{"media_id": 7}]],
    )

    user = await UserRepository(db).find_by_id("2")

    assert user.favorites == ["5", "7"]
    assert user.history == ["7"]
    assert user.password_hash == "$2b$04$hash"


async def test_find_by_email_is_case_insensitive():
    db = FakeDatabaseConnection(one=[None])

    assert await UserRepository(db).find_by_email("  ANA@example.com ") is None
    query, args = db.calls[0]
    assert "LOWER(email) = LOWER($1)" in query
    assert args == ("ANA@example.com",)


async def test_history_for_missing_user():
    db = FakeDatabaseConnection(one=[None])
    assert await UserRepository(db).push_history("2", "5", 100) is None


async def test_push_history_trims_to_limit():
    db = FakeDatabaseConnection(one=[{"id": 2}], many=[[{"media_id": 5}]], status="INSERT 0 1")

    history = await UserRepository(db).push_history("2", "5", 100)

    assert history == ["5"]
    upsert, trim = db.calls[1], db.calls[2]
    assert "ON CONFLICT (user_id, media_id) DO UPDATE" in upsert[0]
    assert upsert[1] == (2, 5)
    assert "LIMIT $2" in trim[0]
    assert trim[1] == (2, 100)

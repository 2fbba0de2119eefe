"""
Tests for CommentService
"""
from datetime import datetime, timedelta, timezone

from gallery_service.domain.models import Comment

from conftest import make_item


async def test_add_fills_author_fields(comment_service, media_service, user_service, ana):
    await user_service.update(ana.id, {"image": "profile_1_2"})
    item = await media_service.add(make_item(ana.id))

    result = await comment_service.add(item.id, ana.id, "  Lovely  ")

    assert result.success
    comment = result.data
    assert comment.text == "Lovely"
    assert comment.user_name == "Ana"
    assert comment.user_avatar == "profile_1_2"
    assert comment.media_id == item.id
    assert comment.created_at is not None


async def test_add_rejects_empty_text(comment_service, media_service, ana):
    item = await media_service.add(make_item(ana.id))

    result = await comment_service.add(item.id, ana.id, "   ")

    assert not result.success
    assert result.error == "Comment text cannot be empty"
    assert await comment_service.get_all() == []


async def test_add_rejects_unknown_media(comment_service, ana):
    result = await comment_service.add("missing", ana.id, "hello")
    assert not result.success
    assert result.error == "Media not found"


async def test_add_rejects_unknown_user(comment_service, media_service):
    item = await media_service.add(make_item("u1"))
    result = await comment_service.add(item.id, "ghost", "hello")
    assert not result.success


async def test_get_by_media_id_newest_first(comment_service, comment_repo):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index, offset in enumerate([1, 3, 2]):
        await comment_repo.create(Comment(
            id=str(index), media_id="m1", user_id="u1", user_name="Ana",
            text=f"c{offset}", created_at=base + timedelta(hours=offset)
        ))
    await comment_repo.create(Comment(
        id="x", media_id="m2", user_id="u1", user_name="Ana", text="other", created_at=base
    ))

    comments = await comment_service.get_by_media_id("m1")
    assert [c.text for c in comments] == ["c3", "c2", "c1"]


async def test_delete_only_by_author(comment_service, media_service, ana, bob):
    item = await media_service.add(make_item(ana.id))
    comment = (await comment_service.add(item.id, ana.id, "mine")).data

    assert await comment_service.delete(comment.id, bob.id) is False
    assert len(await comment_service.get_all()) == 1

    assert await comment_service.delete(comment.id, ana.id) is True
    assert await comment_service.get_all() == []


async def test_delete_missing_comment(comment_service):
    assert await comment_service.delete("missing", "u1") is False

"""
Tests for UserService and SessionManager
"""
from gallery_service.application.services import UserService
from gallery_service.application.session import SessionManager
from gallery_service.infrastructure.auth import is_password_hash
from gallery_service.infrastructure.storage import MemoryStorage, StorageKeys

from conftest import make_item


def reload_tab(user_repo, storage, blob_storage, tab_storage=None):
    """Service as seen after a reload: same durable store, given tab store"""
    sessions = SessionManager(storage, tab_storage if tab_storage is not None else MemoryStorage())
    return UserService(user_repo, sessions, blob_storage)


async def test_register_returns_public_user(user_service, storage):
    result = await user_service.register("Ana", "Ana@Example.com", "secret1")

    assert result.success
    user = result.data
    assert user.name == "Ana"
    assert user.email == "ana@example.com"
    assert user.password_hash is None
    assert user.favorites == [] and user.history == []

    record = storage.get(StorageKeys.USERS)[0]
    assert record["password"] != "secret1"
    assert is_password_hash(record["password"])


async def test_register_opens_session(user_service, ana):
    session = user_service.get_session()
    assert session.user.id == ana.id
    assert session.remembered is False


async def test_register_rejects_duplicate_email_any_case(user_service, ana):
    result = await user_service.register("Other", "ANA@example.com", "secret9")
    assert not result.success
    assert result.error == "Email already registered"


async def test_register_validation(user_service):
    assert (await user_service.register("", "a@b.co", "secret1")).error == "All fields are required"
    assert (await user_service.register("   ", "a@b.co", "secret1")).error == "All fields are required"
    assert (await user_service.register("A", "not-an-email", "secret1")).error == "Invalid email address"
    assert not (await user_service.register("A", "a@b.co", "12345")).success
    assert await user_service.get_all() == []


async def test_login_correct_and_wrong_password(user_service, ana):
    user_service.logout()

    assert await user_service.login("ana@example.com", "wrong") is None
    assert user_service.get_session() is None

    user = await user_service.login("ANA@example.com", "secret1")
    assert user.id == ana.id
    assert user.password_hash is None
    assert user_service.get_session().user.id == ana.id


async def test_login_unknown_email(user_service):
    assert await user_service.login("nobody@example.com", "secret1") is None


async def test_ephemeral_session_lost_without_tab_marker(user_service, user_repo, storage, blob_storage, ana):
    reloaded = reload_tab(user_repo, storage, blob_storage)
    assert reloaded.get_session() is None


async def test_ephemeral_session_survives_in_same_tab(user_repo, storage, tab_storage, blob_storage, ana):
    reloaded = reload_tab(user_repo, storage, blob_storage, tab_storage)
    assert reloaded.get_session().user.id == ana.id


async def test_remembered_session_survives_reload(user_service, user_repo, storage, blob_storage, ana):
    await user_service.login("ana@example.com", "secret1", remember=True)

    reloaded = reload_tab(user_repo, storage, blob_storage)
    session = reloaded.get_session()
    assert session.user.id == ana.id
    assert session.remembered is True


async def test_sessions_are_scoped_per_client(user_repo, storage, tab_storage, blob_storage):
    first = UserService(user_repo, SessionManager(storage, tab_storage, "client-a"), blob_storage)
    second = UserService(user_repo, SessionManager(storage, tab_storage, "client-b"), blob_storage)

    ana = (await first.register("Ana", "ana@example.com", "secret1", remember=True)).data

    assert first.get_session().user.id == ana.id
    assert second.get_session() is None
    assert storage.get(StorageKeys.SESSION) is None

    await second.register("Bob", "bob@example.com", "secret2")
    second.logout()

    assert first.get_session().user.id == ana.id
    assert second.get_session() is None


async def test_logout_clears_everything(user_service, storage, tab_storage, ana):
    await user_service.login("ana@example.com", "secret1", remember=True)
    user_service.logout()

    assert user_service.get_session() is None
    assert storage.get(StorageKeys.SESSION) is None
    assert storage.get(StorageKeys.REMEMBERED) is None
    assert tab_storage.get(StorageKeys.TAB_SESSION) is None


async def test_corrupt_session_snapshot_is_discarded(user_service, storage, ana):
    storage.set(StorageKeys.SESSION, ["not", "a", "user"])

    assert user_service.get_session() is None
    assert storage.get(StorageKeys.SESSION) is None


async def test_lookups_hide_password(user_service, ana):
    assert (await user_service.get_by_id(ana.id)).password_hash is None
    assert (await user_service.get_by_email("ANA@EXAMPLE.COM")).id == ana.id
    assert all(u.password_hash is None for u in await user_service.get_all())
    assert await user_service.get_by_id("missing") is None


async def test_favorites_round_trip(user_service, ana):
    assert await user_service.add_to_favorites(ana.id, "m1")
    assert await user_service.add_to_favorites(ana.id, "m1")
    assert await user_service.get_favorites(ana.id) == ["m1"]

    assert await user_service.remove_from_favorites(ana.id, "m1")
    assert await user_service.get_favorites(ana.id) == []


async def test_favorites_refresh_session_snapshot(user_service, ana):
    await user_service.add_to_favorites(ana.id, "m1")
    assert user_service.get_session().user.favorites == ["m1"]


async def test_favorites_of_other_user_leave_session_alone(user_service, ana, bob):
    await user_service.add_to_favorites(ana.id, "m1")
    assert user_service.get_session().user.id == bob.id
    assert user_service.get_session().user.favorites == []


async def test_favorites_for_missing_user(user_service):
    assert await user_service.add_to_favorites("ghost", "m1") is False
    assert await user_service.remove_from_favorites("ghost", "m1") is False
    assert await user_service.get_favorites("ghost") == []


async def test_history_moves_to_front_without_duplicates(user_service, ana):
    for media_id in ["a", "b", "c", "a"]:
        assert await user_service.add_to_history(ana.id, media_id)

    assert await user_service.get_history(ana.id) == ["a", "c", "b"]
    assert user_service.get_session().user.history == ["a", "c", "b"]


async def test_history_is_capped(user_service, ana):
    for index in range(105):
        await user_service.add_to_history(ana.id, str(index))

    history = await user_service.get_history(ana.id)
    assert len(history) == 100
    assert history[0] == "104"
    assert history[-1] == "5"


async def test_history_for_missing_user(user_service):
    assert await user_service.add_to_history("ghost", "m1") is False
    assert await user_service.get_history("ghost") == []


async def test_update_profile(user_service, ana):
    result = await user_service.update(ana.id, {"name": "Ana María", "email": "AM@example.com"})

    assert result.success
    assert result.data.name == "Ana María"
    assert result.data.email == "am@example.com"
    assert user_service.get_session().user.name == "Ana María"


async def test_update_rejects_taken_email(user_service, ana, bob):
    result = await user_service.update(bob.id, {"email": "ana@example.com"})
    assert not result.success
    assert result.error == "Email already registered"


async def test_update_password_rehashes(user_service, ana):
    assert (await user_service.update(ana.id, {"password": "newpass"})).success
    user_service.logout()

    assert await user_service.login("ana@example.com", "secret1") is None
    assert (await user_service.login("ana@example.com", "newpass")).id == ana.id


async def test_update_missing_user(user_service):
    assert not (await user_service.update("ghost", {"name": "x"})).success


async def test_update_profile_image(user_service, blob_storage, png_data_uri, ana):
    first = await user_service.update_profile_image(ana.id, png_data_uri)
    assert first.success
    assert first.data.startswith(f"profile_{ana.id}_")
    assert blob_storage.get_image(first.data).startswith("data:image/jpeg;base64,")

    second = await user_service.update_profile_image(ana.id, png_data_uri)

    assert (await user_service.get_by_id(ana.id)).image == second.data
    assert user_service.get_session().user.image == second.data
    assert blob_storage.get_image(first.data) == ""


async def test_update_profile_image_rejects_garbage(user_service, ana):
    result = await user_service.update_profile_image(ana.id, "data:image/png;base64,AAAA")
    assert not result.success
    assert (await user_service.get_by_id(ana.id)).image is None


async def test_ana_scenario(user_service, media_service, ana, bob):
    user_service.logout()
    user = await user_service.login("ana@example.com", "secret1")
    assert user.id == ana.id

    item = await media_service.add(make_item(ana.id, user_name="Ana"))
    assert await user_service.add_to_favorites(ana.id, item.id)
    assert [i.id for i in await media_service.get_favorites(await user_service.get_favorites(ana.id))] == [item.id]

    assert await media_service.delete(item.id, bob.id) is False
    assert await media_service.get_by_id(item.id) is not None

    assert await media_service.delete(item.id, ana.id) is True
    assert await media_service.get_by_id(item.id) is None

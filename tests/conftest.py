"""
Shared fixtures: services wired over in-memory storage
"""
from io import BytesIO

import pytest
from PIL import Image

from gallery_service.config import settings
from gallery_service.domain.models import MediaItem, MediaType
from gallery_service.infrastructure.blob_storage import KeyValueBlobStorage
from gallery_service.infrastructure.image_processor import ImageProcessor
from gallery_service.infrastructure.keyvalue.repositories import (
    KeyValueCommentRepository, KeyValueMediaRepository, KeyValueUserRepository,
)
from gallery_service.infrastructure.storage import MemoryStorage, initialize_storage
from gallery_service.application.services import CommentService, MediaService, UserService
from gallery_service.application.session import SessionManager
from gallery_service.application.upload import UploadService


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Cheap hashing and in-memory backends for every test"""
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "memory")
    monkeypatch.setattr(settings, "DATA_BACKEND", "keyvalue")
    monkeypatch.setattr(settings, "BLOB_BACKEND", "keyvalue")
    return settings


@pytest.fixture
def storage():
    store = MemoryStorage(settings.STORAGE_NAMESPACE)
    initialize_storage(store)
    return store


@pytest.fixture
def tab_storage():
    return MemoryStorage()


@pytest.fixture
def blob_storage(storage):
    return KeyValueBlobStorage(storage)


@pytest.fixture
def sessions(storage, tab_storage):
    return SessionManager(storage, tab_storage)


@pytest.fixture
def media_repo(storage):
    return KeyValueMediaRepository(storage)


@pytest.fixture
def comment_repo(storage):
    return KeyValueCommentRepository(storage)


@pytest.fixture
def user_repo(storage):
    return KeyValueUserRepository(storage)


@pytest.fixture
def media_service(media_repo, comment_repo, blob_storage):
    return MediaService(media_repo, comment_repo, blob_storage)


@pytest.fixture
def comment_service(comment_repo, media_repo, user_repo):
    return CommentService(comment_repo, media_repo, user_repo)


@pytest.fixture
def user_service(user_repo, sessions, blob_storage):
    return UserService(user_repo, sessions, blob_storage)


@pytest.fixture
def upload_service(media_service, user_repo, blob_storage):
    return UploadService(media_service, user_repo, blob_storage)


@pytest.fixture
async def ana(user_service):
    result = await user_service.register("Ana", "ana@example.com", "secret1")
    assert result.success
    return result.data


@pytest.fixture
async def bob(user_service):
    result = await user_service.register("Bob", "bob@example.com", "secret2")
    assert result.success
    return result.data


def make_png(size=(40, 20), color="red") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_item(user_id: str, **overrides) -> MediaItem:
    fields = {
        "id": "",
        "title": "Sunset",
        "url": "https://example.com/sunset.jpg",
        "type": MediaType.IMAGE,
        "category": "Nature",
        "user_id": user_id,
    }
    fields.update(overrides)
    return MediaItem(**fields)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def png_data_uri(png_bytes):
    return ImageProcessor.encode_data_uri("image/png", png_bytes)

"""
Tests for uploads and video thumbnail resolution
"""
import pytest

from gallery_service.application.upload import resolve_video_thumbnail
from gallery_service.domain.models import MediaType
from gallery_service.infrastructure.blob_storage import is_blob_id
from gallery_service.infrastructure.storage import StorageKeys


@pytest.mark.parametrize("url,expected", [
    ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "https://img.youtube.com/vi/dQw4w9WgXcQ/hqdefault.jpg"),
    ("https://youtube.com/watch?v=abc123&t=10", "https://img.youtube.com/vi/abc123/hqdefault.jpg"),
    ("https://m.youtube.com/watch?v=mob1", "https://img.youtube.com/vi/mob1/hqdefault.jpg"),
    ("https://www.youtube.com/embed/emb42", "https://img.youtube.com/vi/emb42/hqdefault.jpg"),
    ("https://youtu.be/short9?si=x", "https://img.youtube.com/vi/short9/hqdefault.jpg"),
    ("https://vimeo.com/76979871", "/video-thumbnail.png"),
    ("https://www.youtube.com/feed/trending", "/video-thumbnail.png"),
    ("https://example.com/clip.mp4", "/video-thumbnail.png"),
])
def test_resolve_video_thumbnail(url, expected):
    assert resolve_video_thumbnail(url) == expected


async def test_upload_image_url(upload_service, ana):
    result = await upload_service.upload_media(
        "https://example.com/cat.jpg", "image", "Cat", "Animals", ana.id
    )

    assert result.success
    item = result.data
    assert item.type == MediaType.IMAGE
    assert item.category == "animals"
    assert item.user_name == "Ana"
    assert item.thumbnail is None


async def test_upload_video_gets_thumbnail(upload_service, ana):
    result = await upload_service.upload_media(
        "https://youtu.be/abc", "video", None, "music", ana.id
    )

    assert result.success
    assert result.data.thumbnail == "https://img.youtube.com/vi/abc/hqdefault.jpg"
    assert result.data.title == "Sin título"


async def test_custom_thumbnail_url_wins(upload_service, ana):
    result = await upload_service.upload_media(
        "https://youtu.be/abc", "video", "t", "music", ana.id,
        custom_thumbnail="https://example.com/thumb.jpg"
    )
    assert result.data.thumbnail == "https://example.com/thumb.jpg"


async def test_custom_thumbnail_data_uri_is_stored(upload_service, blob_storage, png_data_uri, ana):
    result = await upload_service.upload_media(
        "https://vimeo.com/1", "video", "t", "music", ana.id, custom_thumbnail=png_data_uri
    )

    thumbnail = result.data.thumbnail
    assert thumbnail.startswith(f"thumbnail_{ana.id}_")
    assert blob_storage.get_image(thumbnail) == png_data_uri


async def test_image_capture_is_stored_as_blob(upload_service, blob_storage, png_data_uri, ana):
    result = await upload_service.upload_media(png_data_uri, "image", "Selfie", "people", ana.id)

    assert result.success
    assert is_blob_id(result.data.url)
    assert result.data.url.startswith(f"capture_{ana.id}_")
    assert blob_storage.get_image(result.data.url) == png_data_uri


@pytest.mark.parametrize("url,media_type,category,error", [
    ("not a url", "image", "c", "Invalid URL"),
    ("/relative/path.jpg", "image", "c", "Invalid URL"),
    ("https://example.com/a.jpg", "audio", "c", "Media type must be 'image' or 'video'"),
    ("https://example.com/a.jpg", "image", "  ", "Category is required"),
])
async def test_upload_validation(upload_service, ana, url, media_type, category, error):
    result = await upload_service.upload_media(url, media_type, "t", category, ana.id)

    assert not result.success
    assert result.error == error


async def test_video_data_uri_rejected(upload_service, png_data_uri, ana):
    result = await upload_service.upload_media(png_data_uri, "video", "t", "c", ana.id)
    assert not result.success


async def test_upload_requires_existing_user(upload_service, media_service):
    missing = await upload_service.upload_media("https://example.com/a.jpg", "image", "t", "c", "ghost")
    anonymous = await upload_service.upload_media("https://example.com/a.jpg", "image", "t", "c", None)

    assert missing.error == "User not found"
    assert anonymous.error == "User is required"
    assert await media_service.get_all() == []


async def test_upload_capture(upload_service, blob_storage, png_bytes, ana):
    result = await upload_service.upload_capture("photo.PNG", "image/png", png_bytes, "Photo", "Me", ana.id)

    assert result.success
    assert result.data.url.startswith("capture_")
    content_type, data = blob_storage.get_image_bytes(result.data.url)
    assert content_type == "image/png"
    assert data == png_bytes


async def test_upload_capture_guesses_content_type(upload_service, blob_storage, png_bytes, ana):
    result = await upload_service.upload_capture("photo.png", "application/octet-stream", png_bytes, None, "c", ana.id)
    assert blob_storage.get_image_bytes(result.data.url)[0] == "image/png"


async def test_upload_capture_rejects_extension(upload_service, png_bytes, ana):
    result = await upload_service.upload_capture("clip.mp4", "video/mp4", png_bytes, None, "c", ana.id)
    assert not result.success
    assert result.error.startswith("Invalid file type")


async def test_upload_capture_rejects_large_file(upload_service, test_settings, monkeypatch, png_bytes, ana):
    monkeypatch.setattr(test_settings, "MAX_FILE_SIZE_MB", 0)
    result = await upload_service.upload_capture("photo.png", "image/png", png_bytes, None, "c", ana.id)
    assert result.error.startswith("File too large")


async def test_upload_capture_rejects_non_image(upload_service, ana):
    result = await upload_service.upload_capture("photo.png", "image/png", b"definitely not a png", None, "c", ana.id)
    assert result.error == "Invalid image"


HTML_DATA_URI = "data:text/html;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg=="


async def test_non_image_capture_rejected(upload_service, media_service, storage, ana):
    result = await upload_service.upload_media(HTML_DATA_URI, "image", "x", "c", ana.id)

    assert result.error == "Invalid image"
    assert await media_service.get_all() == []
    assert storage.get(StorageKeys.PROFILE_IMAGES) == {}


async def test_image_typed_capture_must_hold_an_image(upload_service, ana):
    fake = "data:image/png;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg=="
    result = await upload_service.upload_media(fake, "image", "x", "c", ana.id)
    assert result.error == "Invalid image"


async def test_non_image_thumbnail_rejected(upload_service, media_service, storage, ana):
    result = await upload_service.upload_media(
        "https://youtu.be/abc", "video", "t", "music", ana.id, custom_thumbnail=HTML_DATA_URI
    )

    assert result.error == "Invalid thumbnail"
    assert await media_service.get_all() == []
    assert storage.get(StorageKeys.PROFILE_IMAGES) == {}


async def test_non_http_url_rejected(upload_service, ana):
    result = await upload_service.upload_media("javascript://x/%0aalert(1)", "image", "t", "c", ana.id)
    assert result.error == "Invalid URL"

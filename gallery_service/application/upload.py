"""
Media upload and video thumbnail resolution
"""
import logging
import os
from typing import Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse

from ..config import settings
from ..domain.models import MediaItem, MediaType, OperationResult
from ..domain.repositories import IUserRepository
from ..infrastructure.blob_storage import BlobStorage
from ..infrastructure.image_processor import ImageProcessingError, ImageProcessor
from .services import MediaService, is_absolute_url, parse_media_type

logger = logging.getLogger(__name__)

YOUTUBE_THUMBNAIL = "https://img.youtube.com/vi/{video_id}/hqdefault.jpg"


def _youtube_watch_id(parsed) -> Optional[str]:
    video_id = parse_qs(parsed.query).get("v", [None])[0]
    if video_id:
        return video_id

    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) >= 2 and parts[0] in ("embed", "shorts", "v"):
        return parts[1]
    return None


def _youtu_be_id(parsed) -> Optional[str]:
    parts = [part for part in parsed.path.split("/") if part]
    return parts[0] if parts else None


# Hosts with a static thumbnail template. Anything else (vimeo.com included)
# gets the placeholder.
THUMBNAIL_RESOLVERS: Dict[str, Callable] = {
    "youtube.com": _youtube_watch_id,
    "www.youtube.com": _youtube_watch_id,
    "m.youtube.com": _youtube_watch_id,
    "youtu.be": _youtu_be_id,
}


def _is_image_data(data_uri: str) -> bool:
    try:
        ImageProcessor.decode_image_data_uri(data_uri)
    except ImageProcessingError as e:
        logger.info(f"Rejected image data: {e}")
        return False
    return True


def resolve_video_thumbnail(url: str) -> str:
    """
    Static thumbnail URL for a video link

    No network request is made. Unknown hosts and links without a
    recognizable video id resolve to the placeholder image.
    """
    parsed = urlparse(url or "")
    resolver = THUMBNAIL_RESOLVERS.get((parsed.hostname or "").lower())
    if resolver is not None:
        video_id = resolver(parsed)
        if video_id:
            return YOUTUBE_THUMBNAIL.format(video_id=video_id)
    return settings.VIDEO_PLACEHOLDER_THUMBNAIL


class UploadService:
    """Validates uploads and turns them into media items"""

    def __init__(
        self,
        media_service: MediaService,
        user_repository: IUserRepository,
        blob_storage: BlobStorage
    ):
        self.media_service = media_service
        self.user_repo = user_repository
        self.blob_storage = blob_storage

    async def upload_media(
        self,
        url: str,
        media_type: str,
        title: Optional[str],
        category: Optional[str],
        user_id: Optional[str],
        custom_thumbnail: Optional[str] = None
    ) -> OperationResult:
        """
        Create a media item from a URL or an image data URI

        Args:
            url: Absolute URL, or data URI of a captured image
            media_type: "image" or "video"
            title: Optional title
            category: Category name (required)
            user_id: Uploader id (required)
            custom_thumbnail: Optional thumbnail URL or image data URI

        Returns:
            OperationResult carrying the created MediaItem
        """
        url = (url or "").strip()
        category = (category or "").strip()

        parsed_type = parse_media_type(media_type)
        if parsed_type is None:
            return OperationResult.fail("Media type must be 'image' or 'video'")

        is_capture = ImageProcessor.is_data_uri(url)
        if is_capture and parsed_type != MediaType.IMAGE:
            return OperationResult.fail("Only images can be uploaded as data")
        if not is_capture and not is_absolute_url(url):
            return OperationResult.fail("Invalid URL")
        if is_capture and not _is_image_data(url):
            return OperationResult.fail("Invalid image")
        thumbnail_is_data = ImageProcessor.is_data_uri(custom_thumbnail)
        if thumbnail_is_data and not _is_image_data(custom_thumbnail):
            return OperationResult.fail("Invalid thumbnail")

        if not category:
            return OperationResult.fail("Category is required")

        if not user_id:
            return OperationResult.fail("User is required")
        user = await self.user_repo.find_by_id(user_id)
        if user is None:
            return OperationResult.fail("User not found")

        if is_capture:
            url = self.blob_storage.upload_image(url, user.id, "capture")
            if not url:
                return OperationResult.fail("Could not store image")

        thumbnail = None
        if custom_thumbnail:
            if thumbnail_is_data:
                thumbnail = self.blob_storage.upload_image(custom_thumbnail, user.id, "thumbnail")
                if not thumbnail:
                    return OperationResult.fail("Could not store thumbnail")
            elif is_absolute_url(custom_thumbnail) or custom_thumbnail.startswith("/"):
                thumbnail = custom_thumbnail
            else:
                return OperationResult.fail("Invalid thumbnail")
        elif parsed_type == MediaType.VIDEO:
            thumbnail = resolve_video_thumbnail(url)

        item = await self.media_service.add(MediaItem(
            id="",
            title=(title or "").strip(),
            url=url,
            type=parsed_type,
            category=category,
            user_id=user.id,
            user_name=user.name,
            thumbnail=thumbnail,
        ))
        if item is None:
            return OperationResult.fail("Could not save media")

        logger.info(f"User {user.id} uploaded media {item.id}")
        return OperationResult.ok(item)

    async def upload_capture(
        self,
        filename: str,
        content_type: Optional[str],
        data: bytes,
        title: Optional[str],
        category: Optional[str],
        user_id: Optional[str]
    ) -> OperationResult:
        """Create an image media item from raw file bytes"""
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in settings.ALLOWED_IMAGE_EXTENSIONS:
            return OperationResult.fail(
                f"Invalid file type. Allowed: {', '.join(settings.ALLOWED_IMAGE_EXTENSIONS)}"
            )

        if not data:
            return OperationResult.fail("Empty file")

        max_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024
        if len(data) > max_size:
            return OperationResult.fail(f"File too large. Maximum size: {settings.MAX_FILE_SIZE_MB}MB")

        try:
            ImageProcessor.get_image_dimensions(data)
        except ImageProcessingError as e:
            logger.info(f"Rejected capture {filename}: {e}")
            return OperationResult.fail("Invalid image")

        if not content_type or not content_type.startswith("image/"):
            content_type = "image/jpeg" if ext in (".jpg", ".jpeg") else f"image/{ext[1:]}"

        return await self.upload_media(
            url=ImageProcessor.encode_data_uri(content_type, data),
            media_type=MediaType.IMAGE.value,
            title=title,
            category=category,
            user_id=user_id,
        )

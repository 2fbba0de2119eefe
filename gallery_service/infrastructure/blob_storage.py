"""
Blob storage for images (profile pictures, captures, thumbnails)
"""
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Dict, Optional, Tuple
import logging
import re

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from ..domain.models import generate_id
from ..domain.repositories import IStorage
from .image_processor import ImageProcessingError, ImageProcessor
from .storage import StorageKeys

logger = logging.getLogger(__name__)

BLOB_KINDS = ("profile", "thumbnail", "capture")

_BLOB_ID = re.compile(r"^(%s)_([A-Za-z0-9-]+)_\d+$" % "|".join(BLOB_KINDS))


def make_blob_id(kind: str, user_id: str) -> str:
    """Blob ids have the form {kind}_{user_id}_{timestamp}"""
    return f"{kind}_{user_id}_{generate_id()}"


def is_blob_id(value: Optional[str]) -> bool:
    """Check if value references a stored blob rather than a URL"""
    return bool(value) and _BLOB_ID.match(value) is not None


def blob_owner(value: Optional[str]) -> Optional[str]:
    """User id embedded in a blob id, or None when value is not a blob id"""
    match = _BLOB_ID.match(value or "")
    return match.group(2) if match else None


class BlobStorage(ABC):
    """Image blob store keyed by generated ids"""

    def upload_image(self, image_data: str, user_id: str, kind: str = "profile") -> str:
        """
        Store a base64 image data URI

        Args:
            image_data: data URI (data:image/...;base64,...) of a readable image
            user_id: Owner of the image
            kind: One of BLOB_KINDS

        Returns:
            Generated blob id, or "" on failure
        """
        if kind not in BLOB_KINDS:
            logger.error(f"Unknown blob kind {kind}")
            return ""
        try:
            content_type, data = ImageProcessor.decode_image_data_uri(image_data)
        except ImageProcessingError as e:
            logger.error(f"Rejected image upload for user {user_id}: {e}")
            return ""

        blob_id = make_blob_id(kind, user_id)
        if not self._put(blob_id, content_type, data, image_data):
            return ""
        return blob_id

    def get_image(self, blob_id: str) -> str:
        """Stored image as a data URI, or "" when missing"""
        blob = self.get_image_bytes(blob_id)
        if not blob:
            return ""
        content_type, data = blob
        return ImageProcessor.encode_data_uri(content_type, data)

    @abstractmethod
    def get_image_bytes(self, blob_id: str) -> Optional[Tuple[str, bytes]]:
        """Stored image as (content_type, bytes), or None when missing"""
        pass

    @abstractmethod
    def delete_image(self, blob_id: str) -> bool:
        """Delete a stored image; False when missing"""
        pass

    @abstractmethod
    def _put(self, blob_id: str, content_type: str, data: bytes, data_uri: str) -> bool:
        pass


class KeyValueBlobStorage(BlobStorage):
    """Images kept as data URIs in one map inside the storage facade"""

    def __init__(self, storage: IStorage):
        self.storage = storage

    def _images(self) -> Dict[str, str]:
        images = self.storage.get(StorageKeys.PROFILE_IMAGES)
        return images if isinstance(images, dict) else {}

    def _put(self, blob_id: str, content_type: str, data: bytes, data_uri: str) -> bool:
        images = self._images()
        images[blob_id] = data_uri
        return self.storage.set(StorageKeys.PROFILE_IMAGES, images)

    def get_image_bytes(self, blob_id: str) -> Optional[Tuple[str, bytes]]:
        data_uri = self._images().get(blob_id)
        if not data_uri:
            return None
        try:
            return ImageProcessor.decode_data_uri(data_uri)
        except ImageProcessingError as e:
            logger.error(f"Corrupt image {blob_id}: {e}")
            return None

    def delete_image(self, blob_id: str) -> bool:
        images = self._images()
        if blob_id not in images:
            return False
        del images[blob_id]
        return self.storage.set(StorageKeys.PROFILE_IMAGES, images)


class S3BlobStorage(BlobStorage):
    """Images stored as objects in S3/MinIO"""

    def __init__(self, client=None, bucket_name: Optional[str] = None):
        """Initialize storage client"""
        if client is None:
            client_args = {
                "aws_access_key_id": settings.AWS_ACCESS_KEY_ID or None,
                "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY or None,
                "region_name": settings.AWS_REGION,
            }
            if settings.S3_ENDPOINT_URL:
                client_args["endpoint_url"] = settings.S3_ENDPOINT_URL
            client = boto3.client("s3", **client_args)

        self.client = client
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create bucket if it doesn't exist"""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"Bucket {self.bucket_name} exists")
        except ClientError:
            try:
                if settings.AWS_REGION == "us-east-1":
                    self.client.create_bucket(Bucket=self.bucket_name)
                else:
                    self.client.create_bucket(
                        Bucket=self.bucket_name,
                        CreateBucketConfiguration={'LocationConstraint': settings.AWS_REGION}
                    )
                logger.info(f"Created bucket {self.bucket_name}")
            except ClientError as e:
                logger.error(f"Failed to create bucket: {e}")

    def _put(self, blob_id: str, content_type: str, data: bytes, data_uri: str) -> bool:
        try:
            self.client.upload_fileobj(
                BytesIO(data),
                self.bucket_name,
                blob_id,
                ExtraArgs={'ContentType': content_type}
            )
            logger.info(f"Uploaded {blob_id} to {self.bucket_name}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {blob_id}: {e}")
            return False

    def get_image_bytes(self, blob_id: str) -> Optional[Tuple[str, bytes]]:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=blob_id)
            content_type = response.get('ContentType') or "application/octet-stream"
            return content_type, response['Body'].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to download {blob_id}: {e}")
            return None

    def delete_image(self, blob_id: str) -> bool:
        if not is_blob_id(blob_id):
            return False
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=blob_id)
            logger.info(f"Deleted {blob_id} from {self.bucket_name}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {blob_id}: {e}")
            return False


def create_blob_storage(storage: IStorage, backend: Optional[str] = None) -> BlobStorage:
    """Build the blob storage configured in settings"""
    backend = backend or settings.BLOB_BACKEND
    if backend == "s3":
        return S3BlobStorage()
    if backend == "keyvalue":
        return KeyValueBlobStorage(storage)
    raise ValueError(f"Unknown blob backend: {backend}")

"""
Image processing utilities for data URIs, avatars and thumbnails
"""
from PIL import Image, ImageOps, UnidentifiedImageError
from io import BytesIO
from typing import Optional, Tuple
import base64
import binascii
import re

_DATA_URI = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)


class ImageProcessingError(ValueError):
    """Raised when image data cannot be decoded"""


class ImageProcessor:
    """Image processing and manipulation"""

    @staticmethod
    def is_data_uri(value: Optional[str]) -> bool:
        """Check if value is a base64 data URI"""
        return bool(value) and _DATA_URI.match(value) is not None

    @staticmethod
    def decode_data_uri(data_uri: str) -> Tuple[str, bytes]:
        """
        Split a base64 data URI

        Returns:
            Tuple of (content_type, raw bytes)

        Raises:
            ImageProcessingError: If the data URI is malformed
        """
        match = _DATA_URI.match(data_uri or "")
        if not match:
            raise ImageProcessingError("Invalid base64 data URI")
        try:
            return match.group(1), base64.b64decode(match.group(2), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageProcessingError(f"Invalid base64 payload: {e}")

    @staticmethod
    def decode_image_data_uri(data_uri: str) -> Tuple[str, bytes]:
        """
        Split a data URI that must hold a readable image

        Raises:
            ImageProcessingError: If the content type is not image/* or the
                bytes do not open as an image
        """
        content_type, data = ImageProcessor.decode_data_uri(data_uri)
        if not content_type.lower().startswith("image/"):
            raise ImageProcessingError(f"Unsupported content type {content_type}")
        ImageProcessor.get_image_dimensions(data)
        return content_type, data

    @staticmethod
    def encode_data_uri(content_type: str, data: bytes) -> str:
        """Build a base64 data URI"""
        return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"

    @staticmethod
    def resize_image(image: Image.Image, target_size: Tuple[int, int], quality: int = 90) -> BytesIO:
        """
        Resize image to fill target_size, center-cropping the overflow

        Args:
            image: PIL Image object
            target_size: Target size (width, height)
            quality: JPEG quality (1-100)

        Returns:
            BytesIO buffer containing the JPEG image
        """
        image = ImageOps.exif_transpose(image)

        # Convert RGBA to RGB if necessary
        if image.mode == 'RGBA':
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        img_width, img_height = image.size
        target_width, target_height = target_size

        img_ratio = img_width / img_height
        target_ratio = target_width / target_height

        if img_ratio > target_ratio:
            new_height = target_height
            new_width = max(target_width, int(target_height * img_ratio))
        else:
            new_width = target_width
            new_height = max(target_height, int(target_width / img_ratio))

        image = image.resize((new_width, new_height), Image.Resampling.LANCZOS)

        left = (new_width - target_width) / 2
        top = (new_height - target_height) / 2
        image = image.crop((left, top, left + target_width, top + target_height))

        buffer = BytesIO()
        image.save(buffer, format='JPEG', quality=quality, optimize=True)
        buffer.seek(0)
        return buffer

    @staticmethod
    def create_thumbnail_data_uri(data_uri: str, size: Tuple[int, int], quality: int = 85) -> str:
        """
        Re-encode an image data URI as a JPEG thumbnail data URI

        Raises:
            ImageProcessingError: If the payload is not a readable image
        """
        content_type, data = ImageProcessor.decode_image_data_uri(data_uri)
        try:
            with Image.open(BytesIO(data)) as img:
                buffer = ImageProcessor.resize_image(img, size, quality)
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(f"Unreadable image: {e}")
        return ImageProcessor.encode_data_uri("image/jpeg", buffer.getvalue())

    @staticmethod
    def get_image_dimensions(image_bytes: bytes) -> Tuple[int, int]:
        """
        Get image dimensions without fully loading it

        Raises:
            ImageProcessingError: If the bytes are not a readable image
        """
        try:
            with Image.open(BytesIO(image_bytes)) as img:
                return img.size
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(f"Unreadable image: {e}")

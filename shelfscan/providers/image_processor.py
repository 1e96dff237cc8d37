"""
Image Processing Utilities

Validation and recompression of data-URI encoded images before they are
sent to a vision backend.
"""

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError
from loguru import logger


DATA_URI_PATTERN = re.compile(r"^data:image/(?P<format>[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)

PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}


class InvalidImageError(ValueError):
    """Image payload could not be decoded."""


@dataclass
class ImageValidation:
    valid: bool
    error: Optional[str] = None


@dataclass
class ProcessedImage:
    """Recompressed image ready for transmission."""
    data_uri: str
    width: int
    height: int
    format: str

    @property
    def media_type(self) -> str:
        return f"image/{self.format}"

    @property
    def base64_payload(self) -> str:
        return self.data_uri.split(",", 1)[1]


def _payload(data_uri: str) -> str:
    return data_uri.split(",", 1)[1] if "," in data_uri else ""


def payload_size_mb(data_uri: str) -> float:
    """Decoded size of the base64 payload in MB."""
    size_bytes = (len(_payload(data_uri)) * 3) / 4
    return size_bytes / (1024 * 1024)


def validate_image(data_uri: str, max_size_mb: float) -> ImageValidation:
    """
    Validate format and size of a base64 data URI.

    Args:
        data_uri: Image as ``data:image/<fmt>;base64,<payload>``
        max_size_mb: Maximum decoded size

    Returns:
        ImageValidation with an error message when invalid
    """
    if not isinstance(data_uri, str) or not data_uri.startswith("data:image/"):
        return ImageValidation(valid=False, error="Invalid base64 image format")

    if not _payload(data_uri):
        return ImageValidation(valid=False, error="Image payload is empty")

    size_mb = payload_size_mb(data_uri)
    if size_mb > max_size_mb:
        return ImageValidation(
            valid=False,
            error=f"Image size ({size_mb:.2f}MB) exceeds limit ({max_size_mb:g}MB)",
        )

    return ImageValidation(valid=True)


def get_image_metadata(data_uri: str) -> dict:
    """Extract format and size from a data URI without decoding it."""
    match = DATA_URI_PATTERN.match(data_uri or "")
    image_format = match.group("format") if match else "unknown"
    size_kb = payload_size_mb(data_uri or "") * 1024
    return {"format": image_format, "size_kb": size_kb}


def decode_image(data_uri: str) -> Image.Image:
    """Decode a data URI into a PIL image."""
    try:
        raw = base64.b64decode(_payload(data_uri), validate=True)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidImageError(f"Could not decode image: {e}") from e
    return image


def encode_image(image: Image.Image, format: str = "jpeg", quality: float = 0.85) -> str:
    """Encode a PIL image as a data URI."""
    pil_format = PIL_FORMATS.get(format, "JPEG")
    if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = io.BytesIO()
    save_kwargs = {}
    if pil_format in ("JPEG", "WEBP"):
        save_kwargs["quality"] = max(1, min(95, round(quality * 100)))
    image.save(buffer, format=pil_format, **save_kwargs)

    payload = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/{format};base64,{payload}"


def process_image(
    data_uri: str,
    max_width: int = 2048,
    quality: float = 0.85,
    format: str = "jpeg",
) -> ProcessedImage:
    """
    Normalize an image for analysis.

    Applies EXIF orientation, downsizes to ``max_width`` keeping the aspect
    ratio, and re-encodes at the requested quality.

    Args:
        data_uri: Source image as a data URI
        max_width: Maximum output width in pixels
        quality: Compression quality in (0, 1]
        format: Output format (jpeg, png, webp)

    Returns:
        ProcessedImage

    Raises:
        InvalidImageError: If the payload cannot be decoded
    """
    image = decode_image(data_uri)
    image = ImageOps.exif_transpose(image)

    if image.width > max_width:
        ratio = max_width / image.width
        new_size = (max_width, max(1, round(image.height * ratio)))
        logger.debug(f"Resizing image from {image.size} to {new_size}")
        image = image.resize(new_size, Image.Resampling.LANCZOS)

    encoded = encode_image(image, format=format, quality=quality)

    return ProcessedImage(
        data_uri=encoded,
        width=image.width,
        height=image.height,
        format=format,
    )

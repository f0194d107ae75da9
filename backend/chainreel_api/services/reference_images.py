"""
Seed Image Decoding

Clients send seed images as base64 strings, optionally wrapped in a data
URL. Providers receive every image as an ``image/jpeg`` multipart part, so
each image is verified with Pillow and re-encoded to RGB JPEG here, before
the chain job is queued.
"""

import base64
import binascii
import io
import logging
import re
from typing import Any, Iterable, List

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,", re.IGNORECASE)

JPEG_QUALITY = 92


class InvalidReferenceImage(ValueError):
    """A seed image could not be decoded."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Reference image {index + 1} is invalid: {reason}")


def strip_data_url(value: str) -> str:
    """
    Remove a ``data:image/...;base64,`` prefix if present.

    Example:
        >>> strip_data_url("data:image/png;base64,iVBORw0KGgo=")
        'iVBORw0KGgo='
    """
    return DATA_URL_PATTERN.sub("", value.strip(), count=1)


def _to_rgb(img: Image.Image) -> Image.Image:
    """Convert to RGB, flattening any transparency onto white."""
    if img.mode in ("RGBA", "P", "LA"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def decode_reference_image(value: str, index: int = 0) -> bytes:
    """
    Decode one base64 seed image into JPEG bytes.

    EXIF orientation is applied so the provider sees the image upright.

    Raises:
        InvalidReferenceImage: If the value is not valid base64 image data
    """
    try:
        raw = base64.b64decode(strip_data_url(value), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidReferenceImage(index, f"not valid base64 ({e})")

    if not raw:
        raise InvalidReferenceImage(index, "empty image data")

    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            output = io.BytesIO()
            _to_rgb(img).save(output, "JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidReferenceImage(index, f"not a readable image ({e})")

    return output.getvalue()


def decode_reference_images(values: Iterable[Any]) -> List[bytes]:
    """
    Decode seed images in order, skipping non-string entries.

    Raises:
        InvalidReferenceImage: On the first undecodable image
    """
    images = []
    for index, value in enumerate(values):
        if not isinstance(value, str) or not value.strip():
            logger.debug(f"Skipping non-string reference image entry at {index}")
            continue
        images.append(decode_reference_image(value, index))
    return images

"""Image processing utilities for sessionlens.

Decoding of uploaded screenshots and preparation of the bytes sent to
the vision model.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

from sessionlens.domain.models import BinaryPayload
from sessionlens.errors import BadInput

logger = logging.getLogger(__name__)

_MIME_BY_FORMAT = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def decode_image_data(image: str) -> BinaryPayload:
    """Decode a base64 image (optionally a ``data:`` URL) into a payload.

    The MIME type is taken from the decoded image itself, not from the
    data URL header.

    Raises:
        BadInput: If the string is not base64 or not a supported image.
    """
    encoded = image.split(",", 1)[1] if "," in image else image
    try:
        data = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadInput(f"image is not valid base64: {e}", field="image") from e
    if not data:
        raise BadInput("image is empty", field="image")

    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format or ""
    except (UnidentifiedImageError, OSError) as e:
        raise BadInput("image could not be decoded", field="image") from e

    mime_type = _MIME_BY_FORMAT.get(fmt)
    if mime_type is None:
        raise BadInput(f"unsupported image format: {fmt or 'unknown'}", field="image")
    return BinaryPayload(data=data, mime_type=mime_type)


def resize_for_model(payload: BinaryPayload, max_dimension: int = 2048) -> BinaryPayload:
    """Downscale a screenshot so its largest side fits ``max_dimension``.

    Preserves aspect ratio. Images already within bounds are returned
    untouched; resized images are re-encoded as PNG.
    """
    with Image.open(io.BytesIO(payload.data)) as img:
        w, h = img.size
        largest = max(w, h)
        if largest <= max_dimension:
            return payload

        scale = max_dimension / largest
        new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
        resized = img.convert("RGBA" if img.mode in ("RGBA", "LA", "P") else "RGB").resize(
            new_size, Image.Resampling.LANCZOS
        )

    buffer = io.BytesIO()
    resized.save(buffer, format="PNG")
    logger.debug("Resized screenshot from %dx%d to %dx%d", w, h, *new_size)
    return BinaryPayload(data=buffer.getvalue(), mime_type="image/png")

"""Tests for screenshot decoding and resizing."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from sessionlens.domain.models import BinaryPayload
from sessionlens.errors import BadInput
from sessionlens.utils.imaging import decode_image_data, resize_for_model


def _encode(img: Image.Image, fmt: str) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class TestDecodeImageData:
    def test_plain_base64_png(self, png_bytes: bytes, png_base64: str) -> None:
        payload = decode_image_data(png_base64)
        assert payload.data == png_bytes
        assert payload.mime_type == "image/png"

    def test_data_url(self, png_bytes: bytes, png_base64: str) -> None:
        payload = decode_image_data(f"data:image/png;base64,{png_base64}")
        assert payload.data == png_bytes

    def test_mime_type_from_content_not_header(self) -> None:
        jpeg = _encode(Image.new("RGB", (4, 4)), "JPEG")
        encoded = base64.b64encode(jpeg).decode("ascii")
        payload = decode_image_data(f"data:image/png;base64,{encoded}")
        assert payload.mime_type == "image/jpeg"

    def test_invalid_base64(self) -> None:
        with pytest.raises(BadInput) as exc_info:
            decode_image_data("not base64 !!!")
        assert exc_info.value.field == "image"

    def test_base64_of_non_image(self) -> None:
        with pytest.raises(BadInput, match="could not be decoded"):
            decode_image_data(base64.b64encode(b"hello world").decode("ascii"))

    def test_empty_payload(self) -> None:
        with pytest.raises(BadInput):
            decode_image_data("data:image/png;base64,")


class TestResizeForModel:
    def test_small_image_untouched(self, png_payload: BinaryPayload) -> None:
        assert resize_for_model(png_payload) is png_payload

    def test_large_image_downscaled(self) -> None:
        data = _encode(Image.new("RGB", (400, 100), (10, 20, 30)), "PNG")
        resized = resize_for_model(BinaryPayload(data=data), max_dimension=200)
        with Image.open(io.BytesIO(resized.data)) as img:
            assert img.size == (200, 50)
            assert img.format == "PNG"
        assert resized.mime_type == "image/png"

    def test_jpeg_reencoded_as_png(self) -> None:
        data = _encode(Image.new("RGB", (300, 300)), "JPEG")
        resized = resize_for_model(BinaryPayload(data=data, mime_type="image/jpeg"), max_dimension=100)
        assert resized.mime_type == "image/png"

"""Shared image helpers for decoding, fitting and encoding."""

from __future__ import annotations

import io
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError

Color = Tuple[int, int, int]


def parse_hex_color(value: str) -> Color:
    value = value.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Invalid hex colour: {value}")
    return tuple(int(value[i : i + 2], 16) for i in range(0, 6, 2))  # type: ignore[return-value]


def decode_image(data: bytes) -> Image.Image:
    """Fully decode ``data`` into an RGBA image (first frame, EXIF-oriented)."""

    buf = io.BytesIO(data)
    try:
        img = Image.open(buf)
        if getattr(img, "is_animated", False):
            img.seek(0)
        img.load()
        img = ImageOps.exif_transpose(img)
        return img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, EOFError) as exc:
        raise DecodeError(f"Could not decode image: {exc}") from exc


def cover_fit(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Scale and centre-crop ``img`` so it fills ``size`` (CSS ``object-fit: cover``)."""

    return ImageOps.fit(img, size, Image.Resampling.LANCZOS, centering=(0.5, 0.5))


def encode_png(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    try:
        img.save(buffer, format="PNG")
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Could not encode PNG: {exc}") from exc
    return buffer.getvalue()


__all__ = ["Color", "cover_fit", "decode_image", "encode_png", "parse_hex_color"]

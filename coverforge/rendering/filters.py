"""Blur/brightness filters and the baking step used before export.

The live preview applies the filter chain to the fitted background every
time it renders. The export rasterizer never applies filters; instead the
background is *baked*: the filter is rendered once into a new bitmap at
the image's native resolution and the configuration is pointed at it.
"""

from __future__ import annotations

import asyncio
import logging

from PIL import Image, ImageEnhance, ImageFilter

from ..image_processing import decode_image, encode_png
from ..models.config import CoverConfig

_LOGGER = logging.getLogger(__name__)

# Baked blur radius per unit of the blur control.
BLUR_MULTIPLIER = 2.0

NEUTRAL_BLUR = 0.0
NEUTRAL_BRIGHTNESS = 100.0


def needs_baking(config: CoverConfig) -> bool:
    """Return ``True`` when the export background must be pre-filtered."""

    return config.has_active_background_image and config.has_filters


def apply_filter_chain(image: Image.Image, radius: float, factor: float) -> Image.Image:
    """Blur then brighten ``image``; alpha is left untouched."""

    if image.mode != "RGBA":
        image = image.convert("RGBA")
    if radius <= 0 and factor == 1:
        return image.copy()

    r, g, b, a = image.split()
    rgb = Image.merge("RGB", (r, g, b))
    if radius > 0:
        rgb = rgb.filter(ImageFilter.GaussianBlur(radius=radius))
    if factor != 1:
        rgb = ImageEnhance.Brightness(rgb).enhance(factor)
    return Image.merge("RGBA", (*rgb.split(), a))


def bake(data: bytes, blur: float, brightness: float) -> bytes:
    """Render blur/brightness into a new PNG at the source's native size.

    Raises :class:`~coverforge.errors.DecodeError` when ``data`` is not a
    decodable image.
    """

    source = decode_image(data)
    surface = Image.new("RGBA", source.size, (0, 0, 0, 0))
    surface.paste(source, (0, 0))
    baked = apply_filter_chain(surface, float(blur) * BLUR_MULTIPLIER, float(brightness) / 100.0)
    _LOGGER.debug("Baked %sx%s background (blur=%s, brightness=%s)", source.width, source.height, blur, brightness)
    return encode_png(baked)


async def bake_async(data: bytes, blur: float, brightness: float) -> bytes:
    return await asyncio.to_thread(bake, data, blur, brightness)


__all__ = [
    "BLUR_MULTIPLIER",
    "NEUTRAL_BLUR",
    "NEUTRAL_BRIGHTNESS",
    "apply_filter_chain",
    "bake",
    "bake_async",
    "needs_baking",
]

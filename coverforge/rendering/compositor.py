"""Composition of the cover card on the virtual canvas.

Every coordinate below is expressed in virtual-canvas pixels and
multiplied by ``pixel_ratio`` when drawn, so the preview (ratio 1, scaled
afterwards) and the export (ratio = quality) lay out identically.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from PIL import Image, ImageDraw

from ..image_processing import Color, cover_fit, decode_image, parse_hex_color
from ..models.config import VIRTUAL_HEIGHT, VIRTUAL_WIDTH, CoverConfig
from ..storage.assets import AssetStore
from .filters import apply_filter_chain
from .fonts import FontRegistry, FontType

PADDING = 96
PADDING_LEFT = 160
ROW_GAP = 24

LABEL_TEXT = "ARTICLE_LOG"
LABEL_RULE_WIDTH = 32
LABEL_GAP = 12
LABEL_FONT_SIZE = 12
LABEL_ALPHA = 153

TITLE_LINE_HEIGHT = 0.85
TITLE_SUFFIX = "."

SUBTITLE_FONT_SIZE = 30
SUBTITLE_LINE_HEIGHT = 1.25
SUBTITLE_MARGIN_TOP = 8
SUBTITLE_RULE_WIDTH = 2
SUBTITLE_INDENT = 24

DECORATION_INSET = 48
DECORATION_SIZE = 32
DECORATION_ALPHA = 128
DECORATION_RULE_X = 128
DECORATION_RULE_ALPHA = 26


@dataclass
class Surface:
    image: Image.Image
    fonts: FontRegistry
    ratio: float

    @classmethod
    def create(cls, background: Color, *, fonts: FontRegistry, ratio: float) -> "Surface":
        size = (max(1, round(VIRTUAL_WIDTH * ratio)), max(1, round(VIRTUAL_HEIGHT * ratio)))
        img = Image.new("RGBA", size, color=(*background, 255))
        return cls(image=img, fonts=fonts, ratio=ratio)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def px(self, value: float) -> int:
        return int(round(value * self.ratio))

    def layer(self) -> Tuple[Image.Image, ImageDraw.ImageDraw]:
        overlay = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        return overlay, ImageDraw.Draw(overlay)

    def merge(self, overlay: Image.Image) -> None:
        self.image.alpha_composite(overlay)

    def font(self, family: str | None, size: float) -> FontType:
        return self.fonts.resolve(family, self.px(size))


@dataclass
class _TextLines:
    lines: List[str]
    font: FontType
    line_height: int
    widths: List[int]

    @property
    def width(self) -> int:
        return max(self.widths) if self.widths else 0

    @property
    def height(self) -> int:
        return self.line_height * len(self.lines)


def _measure(lines: Sequence[str], font: FontType, line_height: int, draw: ImageDraw.ImageDraw) -> _TextLines:
    widths = [int(round(draw.textlength(line, font=font))) for line in lines]
    return _TextLines(lines=list(lines), font=font, line_height=line_height, widths=widths)


def _text_offset(font: FontType, line_height: int) -> int:
    """Top offset that centres the font's ascent+descent inside a line box."""

    if hasattr(font, "getmetrics"):
        ascent, descent = font.getmetrics()
        return (line_height - (ascent + descent)) // 2
    return 0


def _align_x(left: int, right: int, width: int, horizontal: str) -> int:
    if horizontal == "center":
        return left + (right - left - width) // 2
    if horizontal == "right":
        return right - width
    return left


def _draw_background(surface: Surface, config: CoverConfig, assets: AssetStore, live_filters: bool) -> None:
    if not config.has_active_background_image:
        return
    source = decode_image(assets.get(config.background_image_ref or ""))
    fitted = cover_fit(source, surface.size)
    if live_filters and config.has_filters:
        fitted = apply_filter_chain(
            fitted,
            config.blur_amount * surface.ratio,
            config.brightness_percent / 100.0,
        )
    surface.merge(fitted)


def _draw_decorations(surface: Surface, accent: Color) -> None:
    overlay, draw = surface.layer()
    width, height = surface.size
    inset = surface.px(DECORATION_INSET)
    side = surface.px(DECORATION_SIZE)
    stroke = max(1, surface.px(1))
    colour = (*accent, DECORATION_ALPHA)

    # top-right bracket
    x1, y0 = width - inset - 1, inset
    draw.line(((x1 - side + 1, y0), (x1, y0)), fill=colour, width=stroke)
    draw.line(((x1, y0), (x1, y0 + side - 1)), fill=colour, width=stroke)
    # bottom-left bracket
    x0, y1 = inset, height - inset - 1
    draw.line(((x0, y1 - side + 1), (x0, y1)), fill=colour, width=stroke)
    draw.line(((x0, y1), (x0 + side - 1, y1)), fill=colour, width=stroke)

    rule_x = surface.px(DECORATION_RULE_X)
    draw.line(((rule_x, 0), (rule_x, height)), fill=(255, 255, 255, DECORATION_RULE_ALPHA), width=stroke)
    surface.merge(overlay)


def _draw_text_block(surface: Surface, config: CoverConfig, text_color: Color, accent: Color) -> None:
    width, height = surface.size
    overlay, draw = surface.layer()

    label_font = surface.font("monospace", LABEL_FONT_SIZE)
    label_text_width = int(round(draw.textlength(LABEL_TEXT, font=label_font)))
    label_height = max(surface.px(LABEL_FONT_SIZE * 1.5), 1)
    label_width = surface.px(LABEL_RULE_WIDTH) + surface.px(LABEL_GAP) + label_text_width

    title_size = config.font_size_px
    title_font = surface.font(config.font_family, title_size)
    title_lines = config.title.split("\n")
    title = _measure(title_lines, title_font, max(1, surface.px(title_size * TITLE_LINE_HEIGHT)), draw)
    suffix_width = int(round(draw.textlength(TITLE_SUFFIX, font=title_font)))
    title.widths[-1] += suffix_width

    subtitle_font = surface.font(None, SUBTITLE_FONT_SIZE)
    subtitle = _measure(
        config.subtitle.split("\n"),
        subtitle_font,
        max(1, surface.px(SUBTITLE_FONT_SIZE * SUBTITLE_LINE_HEIGHT)),
        draw,
    )
    subtitle_inset = surface.px(SUBTITLE_RULE_WIDTH) + surface.px(SUBTITLE_INDENT)

    gap = surface.px(ROW_GAP)
    block_height = (
        label_height
        + gap
        + title.height
        + gap
        + surface.px(SUBTITLE_MARGIN_TOP)
        + subtitle.height
    )

    left, right = surface.px(PADDING_LEFT), width - surface.px(PADDING)
    top, bottom = surface.px(PADDING), height - surface.px(PADDING)
    vertical = config.alignment.vertical
    horizontal = config.alignment.horizontal
    if vertical == "center":
        y = top + (bottom - top - block_height) // 2
    elif vertical == "bottom":
        y = bottom - block_height
    else:
        y = top

    # label row: accent rule + caption
    x = _align_x(left, right, label_width, horizontal)
    rule_y = y + label_height // 2
    rule_stroke = max(1, surface.px(1))
    draw.line(((x, rule_y), (x + surface.px(LABEL_RULE_WIDTH) - 1, rule_y)), fill=(*accent, 255), width=rule_stroke)
    caption_x = x + surface.px(LABEL_RULE_WIDTH) + surface.px(LABEL_GAP)
    draw.text(
        (caption_x, y + _text_offset(label_font, label_height)),
        LABEL_TEXT,
        font=label_font,
        fill=(*text_color, LABEL_ALPHA),
    )
    y += label_height + gap

    # title lines, the last one followed by an accent-coloured suffix
    offset = _text_offset(title.font, title.line_height)
    for index, line in enumerate(title.lines):
        x = _align_x(left, right, title.widths[index], horizontal)
        draw.text((x, y + offset), line, font=title.font, fill=(*text_color, 255))
        if index == len(title.lines) - 1:
            suffix_x = x + title.widths[index] - suffix_width
            draw.text((suffix_x, y + offset), TITLE_SUFFIX, font=title.font, fill=(*accent, 255))
        y += title.line_height
    y += gap + surface.px(SUBTITLE_MARGIN_TOP)

    # subtitle behind a half-transparent accent rule
    box_width = subtitle_inset + subtitle.width
    box_x = _align_x(left, right, box_width, horizontal)
    if subtitle.height > 0:
        draw.rectangle(
            (box_x, y, box_x + surface.px(SUBTITLE_RULE_WIDTH) - 1, y + subtitle.height - 1),
            fill=(*accent, 128),
        )
    content_left = box_x + subtitle_inset
    content_right = box_x + box_width
    offset = _text_offset(subtitle.font, subtitle.line_height)
    for index, line in enumerate(subtitle.lines):
        x = _align_x(content_left, content_right, subtitle.widths[index], horizontal)
        draw.text((x, y + offset), line, font=subtitle.font, fill=(*text_color, 230))
        y += subtitle.line_height

    surface.merge(overlay)


def compose(
    config: CoverConfig,
    *,
    fonts: FontRegistry,
    assets: AssetStore,
    pixel_ratio: float = 1.0,
    live_filters: bool,
) -> Image.Image:
    """Render ``config`` at ``pixel_ratio`` times the virtual canvas size.

    ``live_filters`` selects the preview behaviour: blur/brightness are
    applied to the fitted background on every render. The export path
    passes ``False`` and expects the background to be baked already.
    """

    if pixel_ratio <= 0:
        raise ValueError("pixel_ratio must be positive")
    background = parse_hex_color(config.background_color)
    surface = Surface.create(background, fonts=fonts, ratio=pixel_ratio)

    _draw_background(surface, config, assets, live_filters)
    accent = parse_hex_color(config.accent_color)
    if config.show_decorations:
        _draw_decorations(surface, accent)
    _draw_text_block(surface, config, parse_hex_color(config.text_color), accent)
    return surface.image.convert("RGB")


__all__ = ["Surface", "compose"]

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

_HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

VIRTUAL_WIDTH = 1280
VIRTUAL_HEIGHT = 720


class BackgroundMode(str, Enum):
    COLOR = "color"
    IMAGE = "image"


class Alignment(str, Enum):
    """Placement of the text block on a 3x3 grid."""

    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    TOP_RIGHT = "top-right"
    CENTER_LEFT = "center-left"
    CENTER = "center"
    CENTER_RIGHT = "center-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"

    @property
    def vertical(self) -> str:
        if self is Alignment.CENTER:
            return "center"
        return self.value.split("-", 1)[0]

    @property
    def horizontal(self) -> str:
        if self is Alignment.CENTER:
            return "center"
        return self.value.split("-", 1)[1]


class CoverConfig(BaseModel):
    """Immutable description of the cover that is previewed and exported."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field("REFAC7.LOGS", description="Heading, rendered verbatim")
    subtitle: str = Field("ARCHITECT OF THE DIGITAL VOID", description="Sub-heading, rendered verbatim")
    background_mode: BackgroundMode = Field(BackgroundMode.COLOR, description="Solid colour or uploaded image")
    background_color: str = Field(
        "#0e0e0e",
        pattern=_HEX_COLOR_PATTERN,
        description="Fill colour; also clears the canvas in image mode (hex)",
    )
    background_image_ref: Optional[str] = Field(
        default=None,
        description="Asset reference of the uploaded background image",
    )
    accent_color: str = Field("#ef4444", pattern=_HEX_COLOR_PATTERN, description="Accent colour (hex)")
    text_color: str = Field("#ffffff", pattern=_HEX_COLOR_PATTERN, description="Text colour (hex)")
    font_family: str = Field("sans-serif", min_length=1, description="Preset key or registered font name")
    alignment: Alignment = Field(Alignment.BOTTOM_LEFT, description="Text block placement")
    blur_amount: float = Field(0, ge=0, le=20, description="Background blur in control units")
    brightness_percent: float = Field(100, ge=0, le=200, description="Background brightness in percent")
    font_size_px: float = Field(100, gt=0, le=400, description="Title size in virtual canvas pixels")
    show_decorations: bool = Field(True, description="Draw the decorative overlay")

    @property
    def has_active_background_image(self) -> bool:
        return self.background_mode is BackgroundMode.IMAGE and bool(self.background_image_ref)

    @property
    def has_filters(self) -> bool:
        return self.blur_amount > 0 or self.brightness_percent != 100


class CoverConfigUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    subtitle: Optional[str] = None
    background_mode: Optional[BackgroundMode] = None
    background_color: Optional[str] = Field(default=None, pattern=_HEX_COLOR_PATTERN)
    background_image_ref: Optional[str] = None
    accent_color: Optional[str] = Field(default=None, pattern=_HEX_COLOR_PATTERN)
    text_color: Optional[str] = Field(default=None, pattern=_HEX_COLOR_PATTERN)
    font_family: Optional[str] = Field(default=None, min_length=1)
    alignment: Optional[Alignment] = None
    blur_amount: Optional[float] = Field(None, ge=0, le=20)
    brightness_percent: Optional[float] = Field(None, ge=0, le=200)
    font_size_px: Optional[float] = Field(None, gt=0, le=400)
    show_decorations: Optional[bool] = None


class ExportSettings(BaseModel):
    """Controls the export rasterizer."""

    quality: float = Field(1.5, ge=0.5, le=4.0, description="Multiplier applied to the virtual canvas size")
    filename_prefix: str = Field("REFAC7-COVER", min_length=1, max_length=64, description="Prefix of the download name")
    settle_timeout: float = Field(
        2.0,
        gt=0,
        le=30.0,
        description="Upper bound in seconds for the post-substitution render",
    )


class PreviewSettings(BaseModel):
    container_width: Optional[float] = Field(
        default=None,
        description="Initial width of the preview container in screen pixels",
    )
    padding: float = Field(40, ge=0, description="Horizontal padding subtracted from the container width")


class FontSettings(BaseModel):
    search_paths: List[str] = Field(
        default_factory=list,
        description="Extra directories searched for preset font files",
    )


class EditorSettings(BaseModel):
    """Settings file for an editor process (``coverforge.yaml``)."""

    defaults: CoverConfigUpdate = Field(default_factory=CoverConfigUpdate)
    export: ExportSettings = Field(default_factory=ExportSettings)
    preview: PreviewSettings = Field(default_factory=PreviewSettings)
    fonts: FontSettings = Field(default_factory=FontSettings)


class ConfigResponse(BaseModel):
    version: int
    config: CoverConfig


class ViewportUpdate(BaseModel):
    width: Optional[float] = Field(default=None, description="Available container width in screen pixels")
    padding: float = Field(0, ge=0)


class ViewportResponse(BaseModel):
    scale: float
    virtual_size: List[int]
    preview_size: List[int]


class FontListResponse(BaseModel):
    presets: Dict[str, str]
    registered: List[str]
    active: str


def update_payload(update: CoverConfigUpdate) -> Dict[str, Any]:
    """Return only the fields that were explicitly set on ``update``."""

    return update.model_dump(exclude_unset=True)

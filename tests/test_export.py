from __future__ import annotations

import asyncio
import io
from typing import List, Optional

import pytest
from PIL import Image

from coverforge.errors import ExportFailedError, ExportInProgressError, RasterizationError
from coverforge.export import BAKED_KIND, ExportOrchestrator, ExportState
from coverforge.models.config import VIRTUAL_HEIGHT, VIRTUAL_WIDTH, CoverConfig, ExportSettings
from coverforge.rendering.filters import bake_async
from coverforge.rendering.fonts import FontRegistry
from coverforge.rendering.rasterizer import PillowRasterizer
from coverforge.session import CoverSession
from coverforge.storage.assets import AssetStore


def _create_session() -> CoverSession:
    return CoverSession(fonts=FontRegistry(), assets=AssetStore())


def _make_image_bytes(color: str = "orange") -> bytes:
    image = Image.new("RGB", (320, 180), color=color)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class RecordingRasterizer:
    """Captures the configuration it is asked to rasterize."""

    def __init__(self, events: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.seen: List[CoverConfig] = []
        self.events = events if events is not None else []
        self.error = error
        self.release: Optional[asyncio.Event] = None

    async def rasterize(self, config: CoverConfig, *, quality: float) -> Image.Image:
        self.events.append("rasterize")
        self.seen.append(config)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        size = (round(VIRTUAL_WIDTH * quality), round(VIRTUAL_HEIGHT * quality))
        return Image.new("RGB", size, config.background_color)


class CountingBaker:
    def __init__(self, events: List[str]) -> None:
        self.calls: List[tuple] = []
        self.events = events

    async def __call__(self, data: bytes, blur: float, brightness: float) -> bytes:
        self.events.append("bake")
        self.calls.append((data, blur, brightness))
        return await bake_async(data, blur, brightness)


def test_solid_colour_export_has_canvas_size_times_quality() -> None:
    session = _create_session()
    session.update(title="HELLO", background_mode="color", background_color="#000000")
    rasterizer = PillowRasterizer(session.fonts, session.assets)
    exporter = ExportOrchestrator(session, rasterizer, settings=ExportSettings(quality=1.5))

    artifact = asyncio.run(exporter.request_export())

    assert artifact.size == (1920, 1080)
    assert artifact.baked is False
    with Image.open(io.BytesIO(artifact.data)) as image:
        assert image.format == "PNG"
        assert image.size == (1920, 1080)
        rgb = image.convert("RGB")
        for point in ((0, 0), (1919, 0), (0, 1079), (1919, 1079), (960, 20)):
            assert rgb.getpixel(point) == (0, 0, 0)
    assert exporter.state is ExportState.IDLE


def test_filtered_image_is_baked_once_then_restored() -> None:
    events: List[str] = []
    session = _create_session()
    ref = session.upload_background_image("bg.png", _make_image_bytes())
    session.update(blur_amount=10, brightness_percent=50)
    baker = CountingBaker(events)
    rasterizer = RecordingRasterizer(events)
    exporter = ExportOrchestrator(session, rasterizer, baker=baker)

    artifact = asyncio.run(exporter.request_export())

    assert len(baker.calls) == 1
    assert baker.calls[0][1:] == (10, 50)
    assert events == ["bake", "rasterize"]
    seen = rasterizer.seen[0]
    assert seen.blur_amount == 0
    assert seen.brightness_percent == 100
    assert seen.background_image_ref != ref
    assert seen.background_image_ref.startswith(f"{BAKED_KIND}:")
    assert artifact.baked is True

    config = session.config
    assert config.background_image_ref == ref
    assert config.blur_amount == 10
    assert config.brightness_percent == 50
    assert session.assets.refs(BAKED_KIND) == []


@pytest.mark.parametrize(
    "changes",
    [
        {"blur_amount": 0, "brightness_percent": 100},
        {"background_mode": "color", "blur_amount": 8, "brightness_percent": 30},
    ],
)
def test_baking_is_skipped_without_active_filters(changes) -> None:
    events: List[str] = []
    session = _create_session()
    ref = session.upload_background_image("bg.png", _make_image_bytes())
    session.update(changes)
    baker = CountingBaker(events)
    rasterizer = RecordingRasterizer(events)
    exporter = ExportOrchestrator(session, rasterizer, baker=baker)

    asyncio.run(exporter.request_export())

    assert baker.calls == []
    assert rasterizer.seen[0].background_image_ref == ref


def test_rasterization_failure_restores_configuration() -> None:
    session = _create_session()
    ref = session.upload_background_image("bg.png", _make_image_bytes())
    session.update(blur_amount=4, brightness_percent=120)
    before = session.snapshot_export_fields()
    rasterizer = RecordingRasterizer(error=RasterizationError("boom"))
    exporter = ExportOrchestrator(session, rasterizer)

    with pytest.raises(ExportFailedError) as excinfo:
        asyncio.run(exporter.request_export())

    assert isinstance(excinfo.value.__cause__, RasterizationError)
    assert session.snapshot_export_fields() == before
    assert session.config.background_image_ref == ref
    assert exporter.state is ExportState.IDLE
    assert session.assets.refs(BAKED_KIND) == []

    rasterizer.error = None
    artifact = asyncio.run(exporter.request_export())
    assert artifact.size == (1920, 1080)


def test_decode_failure_during_baking_restores_configuration() -> None:
    session = _create_session()
    broken = session.assets.put(b"corrupted bytes", kind="upload", filename="bad.png")
    session.update(background_mode="image", background_image_ref=broken, blur_amount=3, brightness_percent=100)
    before = session.snapshot_export_fields()
    rasterizer = RecordingRasterizer()
    exporter = ExportOrchestrator(session, rasterizer)

    with pytest.raises(ExportFailedError):
        asyncio.run(exporter.request_export())

    assert rasterizer.seen == []
    assert session.snapshot_export_fields() == before
    assert exporter.state is ExportState.IDLE


def test_unresolvable_background_fails_export_with_real_rasterizer() -> None:
    session = _create_session()
    ref = session.upload_background_image("bg.png", _make_image_bytes())
    session.assets.discard(ref)
    exporter = ExportOrchestrator(session, PillowRasterizer(session.fonts, session.assets))

    with pytest.raises(ExportFailedError):
        asyncio.run(exporter.request_export())

    assert session.config.background_image_ref == ref


def test_second_request_is_rejected_while_exporting() -> None:
    session = _create_session()
    session.upload_background_image("bg.png", _make_image_bytes())
    session.update(blur_amount=2)
    rasterizer = RecordingRasterizer()
    exporter = ExportOrchestrator(session, rasterizer)

    async def _scenario():
        rasterizer.release = asyncio.Event()
        first = asyncio.create_task(exporter.request_export())
        while not rasterizer.seen:
            await asyncio.sleep(0)
        assert exporter.state is ExportState.EXPORTING
        during = session.current()

        with pytest.raises(ExportInProgressError):
            await exporter.request_export()

        assert session.current() == during
        assert exporter.state is ExportState.EXPORTING
        rasterizer.release.set()
        return await first

    artifact = asyncio.run(_scenario())

    assert len(rasterizer.seen) == 1
    assert artifact is exporter.last_artifact
    assert exporter.state is ExportState.IDLE
    assert session.config.blur_amount == 2


def test_render_settles_after_substitution_and_before_rasterizing() -> None:
    events: List[str] = []
    settled: List[CoverConfig] = []
    session = _create_session()
    session.upload_background_image("bg.png", _make_image_bytes())
    session.update(brightness_percent=60)

    async def _settle(current: CoverSession) -> None:
        events.append("settle")
        settled.append(current.config)

    exporter = ExportOrchestrator(
        session,
        RecordingRasterizer(events),
        settle=_settle,
        baker=CountingBaker(events),
    )

    asyncio.run(exporter.request_export())

    assert events == ["bake", "settle", "rasterize"]
    assert settled[0].brightness_percent == 100
    assert settled[0].background_image_ref.startswith(f"{BAKED_KIND}:")


def test_slow_settle_is_bounded() -> None:
    session = _create_session()

    async def _never(current: CoverSession) -> None:
        await asyncio.sleep(60)

    exporter = ExportOrchestrator(
        session,
        RecordingRasterizer(),
        settings=ExportSettings(settle_timeout=0.05),
        settle=_never,
    )

    artifact = asyncio.run(exporter.request_export())
    assert artifact.size == (1920, 1080)


def test_artifact_name_uses_prefix_and_timestamp() -> None:
    session = _create_session()
    exporter = ExportOrchestrator(
        session,
        RecordingRasterizer(),
        settings=ExportSettings(filename_prefix="REFAC7-COVER", quality=1.0),
        clock=lambda: 1700000000.123,
    )

    artifact = asyncio.run(exporter.request_export())

    assert artifact.filename == "REFAC7-COVER-1700000000123.png"
    assert artifact.size == (VIRTUAL_WIDTH, VIRTUAL_HEIGHT)


@pytest.mark.parametrize(
    "error",
    [Image.DecompressionBombError("too many pixels"), MemoryError(), KeyError("surprise")],
)
def test_unexpected_baking_errors_become_export_failed(error: BaseException) -> None:
    session = _create_session()
    ref = session.upload_background_image("bg.png", _make_image_bytes())
    session.update(blur_amount=5)
    before = session.snapshot_export_fields()

    async def _failing_baker(data: bytes, blur: float, brightness: float) -> bytes:
        raise error

    exporter = ExportOrchestrator(session, RecordingRasterizer(), baker=_failing_baker)

    with pytest.raises(ExportFailedError) as excinfo:
        asyncio.run(exporter.request_export())

    assert excinfo.value.__cause__ is error
    assert session.snapshot_export_fields() == before
    assert session.config.background_image_ref == ref
    assert exporter.state is ExportState.IDLE


def test_failing_settle_callable_becomes_export_failed() -> None:
    session = _create_session()
    rasterizer = RecordingRasterizer()

    async def _broken_settle(current: CoverSession) -> None:
        raise RuntimeError("preview worker gone")

    exporter = ExportOrchestrator(session, rasterizer, settle=_broken_settle)

    with pytest.raises(ExportFailedError):
        asyncio.run(exporter.request_export())

    assert rasterizer.seen == []
    assert exporter.state is ExportState.IDLE

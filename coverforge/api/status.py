from __future__ import annotations

import asyncio
import io
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..app import AppState, get_app_state
from ..errors import CoverForgeError
from ..models import FontListResponse, ViewportResponse, ViewportUpdate

router = APIRouter(tags=["status"])


class HealthResponse(BaseModel):
    ok: bool
    state: str
    scale: float
    version: int


def _viewport(state: AppState) -> ViewportResponse:
    return ViewportResponse(
        scale=state.scaler.current_scale,
        virtual_size=list(state.scaler.virtual_size),
        preview_size=list(state.scaler.preview_size),
    )


@router.get("/health", response_model=HealthResponse)
async def health(state: AppState = Depends(get_app_state)) -> HealthResponse:
    return HealthResponse(
        ok=True,
        state="processing" if state.exporter.is_exporting else "online",
        scale=state.scaler.current_scale,
        version=state.session.version,
    )


@router.get("/viewport", response_model=ViewportResponse)
async def get_viewport(state: AppState = Depends(get_app_state)) -> ViewportResponse:
    return _viewport(state)


@router.put("/viewport", response_model=ViewportResponse)
async def resize_viewport(
    payload: ViewportUpdate,
    state: AppState = Depends(get_app_state),
) -> ViewportResponse:
    state.scaler.resize(payload.width, payload.padding)
    return _viewport(state)


@router.get("/fonts", response_model=FontListResponse)
async def list_fonts(state: AppState = Depends(get_app_state)) -> FontListResponse:
    return FontListResponse(
        presets=state.fonts.presets(),
        registered=state.fonts.registered(),
        active=state.session.config.font_family,
    )


@router.get("/preview")
async def preview(
    scale: Optional[float] = Query(None, gt=0, le=4, description="Override the viewport scale"),
    state: AppState = Depends(get_app_state),
) -> StreamingResponse:
    config, version = state.session.current()
    try:
        result = await asyncio.to_thread(state.preview_renderer.render, config, version, scale)
    except CoverForgeError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    headers = {
        "Cache-Control": "no-store",
        "X-Preview-Generated-At": result.iso_timestamp(),
        "X-Preview-Stale": "true" if result.stale else "false",
        "X-Preview-Cache": "hit" if result.cache_hit else "miss",
        "X-Preview-Version": str(result.version),
        "X-Preview-Scale": f"{result.scale:.6f}",
    }
    stream = io.BytesIO(result.image_bytes)
    stream.seek(0)
    return StreamingResponse(stream, media_type="image/png", headers=headers)

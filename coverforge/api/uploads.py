"""Upload endpoints for background images and fonts."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from ..app import AppState, get_app_state
from ..errors import ConfigUpdateError, DecodeError, FontLoadError
from ..storage.assets import MAX_UPLOAD_BYTES

router = APIRouter(tags=["uploads"])


def _error_response(message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


async def _single_upload(request: Request) -> UploadFile | JSONResponse:
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type.lower():
        return _error_response("Content-Type must be multipart/form-data")
    try:
        form_data = await request.form()
    except Exception:
        return _error_response("Invalid multipart payload")
    upload = form_data.get("file")
    if not isinstance(upload, UploadFile):
        return _error_response("No file was provided")
    return upload


async def _read(upload: UploadFile) -> bytes:
    try:
        data = await upload.read(MAX_UPLOAD_BYTES + 1)
    finally:
        await upload.close()
    return data


@router.post("/upload/background", response_class=JSONResponse)
async def upload_background(
    request: Request,
    state: AppState = Depends(get_app_state),
) -> JSONResponse:
    upload = await _single_upload(request)
    if isinstance(upload, JSONResponse):
        return upload
    filename = upload.filename or "upload"
    data = await _read(upload)

    try:
        ref = state.session.upload_background_image(filename, data)
    except (ValueError, DecodeError, ConfigUpdateError) as exc:
        return _error_response(str(exc))

    payload: dict[str, Any] = {"ok": True, "file": filename, "ref": ref, "version": state.session.version}
    return JSONResponse(payload)


@router.post("/upload/font", response_class=JSONResponse)
async def upload_font(
    request: Request,
    state: AppState = Depends(get_app_state),
) -> JSONResponse:
    upload = await _single_upload(request)
    if isinstance(upload, JSONResponse):
        return upload
    filename = upload.filename or "font"
    data = await _read(upload)

    try:
        font = await state.session.upload_font(filename, data)
    except (ValueError, FontLoadError) as exc:
        return _error_response(str(exc))

    return JSONResponse(
        {
            "ok": True,
            "file": filename,
            "font_family": font.name,
            "version": state.session.version,
        }
    )


__all__ = ["router", "upload_background", "upload_font"]

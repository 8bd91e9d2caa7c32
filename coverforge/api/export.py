from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from ..app import AppState, get_app_state
from ..errors import ExportFailedError, ExportInProgressError

router = APIRouter(tags=["export"])


@router.post("/export")
async def export_cover(state: AppState = Depends(get_app_state)) -> Response:
    try:
        artifact = await state.exporter.request_export()
    except ExportInProgressError as exc:
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=status.HTTP_409_CONFLICT)
    except ExportFailedError:
        return JSONResponse(
            {"ok": False, "error": "Export failed"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    headers = {
        "Content-Disposition": f'attachment; filename="{artifact.filename}"',
        "Cache-Control": "no-store",
        "X-Export-Size": f"{artifact.size[0]}x{artifact.size[1]}",
        "X-Export-Baked": "true" if artifact.baked else "false",
    }
    return Response(content=artifact.data, media_type=artifact.media_type, headers=headers)

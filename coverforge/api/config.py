from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..app import AppState, get_app_state
from ..errors import ConfigUpdateError
from ..models import ConfigResponse, CoverConfigUpdate, update_payload

router = APIRouter(tags=["config"])


@router.get("/config", response_model=ConfigResponse)
async def get_config(state: AppState = Depends(get_app_state)) -> ConfigResponse:
    config, version = state.session.current()
    return ConfigResponse(version=version, config=config)


@router.patch("/config", response_model=ConfigResponse)
async def update_config(
    payload: CoverConfigUpdate,
    state: AppState = Depends(get_app_state),
) -> ConfigResponse:
    try:
        state.session.update(update_payload(payload))
    except ConfigUpdateError as exc:
        detail = exc.errors if exc.errors is not None else str(exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail) from exc

    config, version = state.session.current()
    return ConfigResponse(version=version, config=config)

"""Liveness endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.config import Settings
from app.dependencies import get_settings
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    """Report that the listener is up.

    Does not consult the deployer, so it keeps answering while a deployment runs.
    """
    return HealthResponse(status="ok", service=settings.app_name)

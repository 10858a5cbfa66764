"""Centralized FastAPI dependencies for use with Depends().

Components are built once by ``create_app`` and stored on ``app.state``;
these getters hand them to route handlers and are the seams tests override.
"""

from fastapi import HTTPException, Request, status

from app.config import Settings
from app.services.append_log import AppendLogger
from app.services.deployer import Deployer


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_append_log(request: Request) -> AppendLogger:
    return request.app.state.append_log


def get_deployer(request: Request) -> Deployer:
    """Return the application deployer.

    ``DeploymentSupervisor`` in production; tests swap in ``InMemoryDeployer``.
    """
    return request.app.state.deployer


async def read_limited_body(request: Request) -> bytes:
    """Buffer the full request body, refusing anything over ``max_body_bytes``.

    Raises:
        HTTPException: 413 if the declared or actual size exceeds the limit.
    """
    limit = request.app.state.settings.max_body_bytes
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Payload too large",
        )

    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Payload too large",
            )
        chunks.append(chunk)
    return b"".join(chunks)


__all__ = [
    "get_append_log",
    "get_deployer",
    "get_settings",
    "read_limited_body",
]

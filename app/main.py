"""FastAPI application factory with lifespan context manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, settings
from app.logging_config import configure_logging
from app.routers import health, webhooks
from app.services.append_log import AppendLogger
from app.services.deployer import DeploymentSupervisor
from app.services.signature import is_verification_disabled


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging, announce the endpoints, and log shutdown."""
    cfg: Settings = app.state.settings
    append_log: AppendLogger = app.state.append_log
    configure_logging(json_logs=not cfg.debug, log_level=cfg.log_level)
    logger = structlog.get_logger()

    append_log.write(f"webhook server started on port {cfg.webhook_port}")
    append_log.write(f"endpoint: http://{cfg.host}:{cfg.webhook_port}/webhook")
    append_log.write(f"health check: http://{cfg.host}:{cfg.webhook_port}/health")
    if is_verification_disabled(cfg.webhook_secret):
        append_log.write("WARNING: WEBHOOK_SECRET is not configured, signatures are NOT verified")
        logger.warning("signature_check_disabled", port=cfg.webhook_port)

    yield

    append_log.write("shutting down webhook server")
    if app.state.deployer.is_running():
        # The script runs in its own session and outlives the server.
        append_log.write("a deployment is still running and will not be awaited")
    append_log.close()


def create_app(cfg: Settings) -> FastAPI:
    """Build the application and the components it owns."""
    application = FastAPI(title=cfg.app_name, lifespan=lifespan)

    append_log = AppendLogger(cfg.resolved_log_file)
    application.state.settings = cfg
    application.state.append_log = append_log
    application.state.deployer = DeploymentSupervisor(
        append_log,
        timeout_seconds=cfg.deploy_timeout_seconds,
    )

    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)

    application.include_router(health.router)
    application.include_router(webhooks.router)
    return application


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as ``{"error": ...}``; unknown routes and methods are 404."""
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for any unhandled exception."""
    logger = structlog.get_logger()
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app = create_app(settings)

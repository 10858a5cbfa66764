"""Tests for exception handlers, lifespan logging and the server entry point."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from app.config import SIGNATURE_SENTINEL
from app.main import create_app, lifespan, unhandled_exception_handler

if TYPE_CHECKING:
    from fastapi import FastAPI

    from app.config import Settings


@pytest.mark.anyio
async def test_global_exception_handler_returns_json() -> None:
    """The unhandled_exception_handler returns JSON with status 500."""
    mock_request = MagicMock()
    mock_request.url.path = "/webhook"
    mock_request.method = "POST"

    response = await unhandled_exception_handler(mock_request, Exception("boom"))

    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "Internal server error"}


@pytest.mark.anyio
async def test_lifespan_logs_startup_and_shutdown(test_app: FastAPI, test_settings: Settings) -> None:
    async with lifespan(test_app):
        pass

    log_text = test_settings.resolved_log_file.read_text()
    assert "webhook server started on port 9000" in log_text
    assert "/webhook" in log_text
    assert "shutting down webhook server" in log_text
    assert "signatures are NOT verified" not in log_text


@pytest.mark.anyio
async def test_lifespan_warns_when_signature_check_disabled(test_settings: Settings) -> None:
    app = create_app(test_settings.model_copy(update={"webhook_secret": SIGNATURE_SENTINEL}))

    async with lifespan(app):
        pass

    assert "signatures are NOT verified" in test_settings.resolved_log_file.read_text()


@pytest.mark.anyio
async def test_lifespan_notes_unfinished_deployment(test_app: FastAPI, test_settings: Settings) -> None:
    test_app.state.deployer = MagicMock()
    test_app.state.deployer.is_running.return_value = True

    async with lifespan(test_app):
        pass

    assert "will not be awaited" in test_settings.resolved_log_file.read_text()


def test_server_main_runs_uvicorn() -> None:
    from app import server

    with patch.object(server.uvicorn, "run") as run:
        assert server.main(["--port", "9100"]) == 0

    run.assert_called_once()
    assert run.call_args.args == ("app.main:app",)
    assert run.call_args.kwargs["port"] == 9100
    assert run.call_args.kwargs["reload"] is False

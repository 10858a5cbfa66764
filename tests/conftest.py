"""Shared test fixtures for settings, the app, and the FastAPI test client."""

import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.dependencies import get_deployer
from app.main import create_app
from app.services.deployer import InMemoryDeployer

WEBHOOK_SECRET = "test-secret"


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every path at a per-test temporary directory."""
    return Settings(
        _env_file=None,
        webhook_secret=WEBHOOK_SECRET,
        deploy_dir=tmp_path,
        deploy_script=tmp_path / "deploy.py",
        deploy_interpreter=sys.executable,
        log_file=tmp_path / "logs" / "webhook.log",
        max_body_bytes=64 * 1024,
    )


@pytest.fixture
def test_app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def mock_deployer() -> InMemoryDeployer:
    """Create a fresh in-memory deployer for test inspection."""
    return InMemoryDeployer()


@pytest.fixture
async def client(
    test_app: FastAPI,
    mock_deployer: InMemoryDeployer,
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient with the deployer overridden.

    The in-memory deployer records triggered deployments instead of
    spawning the deploy script.
    """
    test_app.dependency_overrides[get_deployer] = lambda: mock_deployer
    transport = ASGITransport(app=test_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    test_app.dependency_overrides.clear()

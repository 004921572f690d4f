"""Shared fixtures for API route tests.

Provides:
- A FastAPI test app wired to a MaintenanceService with fake time
- An httpx AsyncClient pointed at the test app
- Pre-configured auth headers
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from calmaint.api.app import create_app
from calmaint.config import Settings

TEST_API_KEY = "test-api-key-12345-abcdefghijklmnop"
TEST_ADMIN_KEY = "test-admin-key-67890-abcdefghijklm"


@pytest.fixture
def test_settings(tmp_path, state_path: str) -> Settings:
    """Create test Settings with temp paths and test API keys."""
    return Settings(
        api_key=TEST_API_KEY,
        admin_api_key=TEST_ADMIN_KEY,
        maintenance_config_path=str(tmp_path / "maintenance.yaml"),
        state_file_path=state_path,
        log_level="WARNING",
        log_format="console",
    )


@pytest.fixture
def test_app(test_settings: Settings, service, registry) -> object:
    """Create a test FastAPI app with the service already on app.state."""
    app = create_app(settings=test_settings)
    app.state.service = service
    app.state.registry = registry
    return app


@pytest.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient for the test app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Standard API key auth headers."""
    return {"Authorization": f"Bearer {TEST_API_KEY}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Admin API key auth headers."""
    return {"Authorization": f"Bearer {TEST_ADMIN_KEY}"}

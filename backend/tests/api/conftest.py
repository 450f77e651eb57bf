"""API-specific test fixtures."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from billing_sync.api.routes import api_router
from billing_sync.main import register_exception_handlers
from billing_sync.middleware.correlation import setup_correlation_middleware


@pytest.fixture
def app(engine) -> FastAPI:
    """App wired like create_app(), minus the lifespan; the engine fixture owns the database."""
    app = FastAPI(title="Billing Sync - Test Client")
    setup_correlation_middleware(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncClient:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

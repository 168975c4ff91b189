"""Unit tests for health endpoints."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from sampledb.error_handlers import register_exception_handlers
from sampledb.routers.health import check_postgres_ready, router


def _build_health_app(postgres_ready: bool) -> FastAPI:
    """Build app with health router and a deterministic readiness override."""
    app = FastAPI()
    register_exception_handlers(app, environment="production")
    app.include_router(router)

    async def _postgres_override() -> bool:
        return postgres_ready

    app.dependency_overrides[check_postgres_ready] = _postgres_override
    return app


async def _get(app: FastAPI, path: str):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.get(path)


@pytest.mark.asyncio
async def test_health_live_returns_200_even_without_database() -> None:
    response = await _get(_build_health_app(postgres_ready=False), "/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "live"}


@pytest.mark.asyncio
async def test_health_ready_returns_200_when_postgres_is_reachable() -> None:
    response = await _get(_build_health_app(postgres_ready=True), "/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_health_ready_returns_503_when_postgres_is_down() -> None:
    response = await _get(_build_health_app(postgres_ready=False), "/health/ready")

    assert response.status_code == 503
    assert response.json() == {"detail": "Service not ready.", "code": "storage_error"}

"""Shared integration-test fixtures backed by a Postgres testcontainer."""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Iterator
from typing import Any

import pytest
from alembic import command
from alembic.config import Config
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from testcontainers.postgres import PostgresContainer

from docker.errors import DockerException


def _clear_dependency_caches() -> None:
    """Clear all singleton/lru-cache dependencies between test phases."""
    from sampledb.config import get_settings
    from sampledb.core.passwords import get_password_hasher
    from sampledb.core.sessions import get_session_manager
    from sampledb.db.session import get_engine, get_session_factory
    from sampledb.services.booking_service import get_booking_service
    from sampledb.services.equipment_service import get_equipment_service
    from sampledb.services.group_service import get_group_service
    from sampledb.services.permission_service import get_permission_service
    from sampledb.services.user_service import get_user_service

    get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    get_password_hasher.cache_clear()
    get_session_manager.cache_clear()
    get_permission_service.cache_clear()
    get_user_service.cache_clear()
    get_booking_service.cache_clear()
    get_equipment_service.cache_clear()
    get_group_service.cache_clear()


async def _dispose_async_singletons() -> None:
    """Dispose loop-bound async resources before changing event loops."""
    from sampledb.db.session import dispose_engine, get_engine

    if get_engine.cache_info().currsize:
        await dispose_engine()


def _postgres_async_url(postgres: PostgresContainer) -> str:
    """Return a postgresql+asyncpg URL across testcontainers versions."""
    try:
        postgres_url = postgres.get_connection_url(driver=None)
    except TypeError:
        postgres_url = postgres.get_connection_url()

    if postgres_url.startswith("postgresql+"):
        postgres_url = "postgresql://" + postgres_url.split("://", 1)[1]

    return postgres_url.replace("postgresql://", "postgresql+asyncpg://", 1)


def _set_env_values(env_values: dict[str, str]) -> Callable[[], None]:
    """Apply env vars and return a restore callback."""
    original = {key: os.environ.get(key) for key in env_values}
    os.environ.update(env_values)

    def _restore() -> None:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    return _restore


@pytest.fixture(scope="session")
def integration_env() -> Iterator[dict[str, str]]:
    """Start Postgres, migrate it, and point settings at it."""
    try:
        postgres = PostgresContainer("postgres:16")
        postgres.start()
    except DockerException as exc:
        if os.environ.get("CI", "").lower() in {"1", "true", "yes"}:
            pytest.fail(f"Docker daemon unavailable in CI for integration tests: {exc}")
        pytest.skip(f"Docker daemon unavailable for integration tests: {exc}")

    database_url = _postgres_async_url(postgres)
    restore_env = _set_env_values(
        {
            "APP__ENVIRONMENT": "development",
            "APP__SERVICE": "sampledb",
            "APP__LOG_LEVEL": "INFO",
            "DATABASE__URL": database_url,
            "SESSION__TTL_SECONDS": "3600",
            "SESSION__COOKIE_SECURE": "false",
            "PASSWORD__BCRYPT_ROUNDS": "4",
            "BOOKING__TIMEZONE": "UTC",
        }
    )
    _clear_dependency_caches()

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")

    try:
        yield {"database_url": database_url}
    finally:
        try:
            _clear_dependency_caches()
        finally:
            restore_env()
            postgres.stop()


@pytest.fixture(scope="function", autouse=True)
async def reset_state(integration_env: dict[str, str]) -> Iterator[None]:
    """Empty all tables and the session table; isolate async singletons per event loop."""
    del integration_env
    from sampledb.db.session import get_session_factory
    from sampledb.models import Booking, Equipment, EquipmentPermission, Group, User

    await _dispose_async_singletons()
    _clear_dependency_caches()

    async with get_session_factory()() as session:
        await session.execute(delete(Booking))
        await session.execute(delete(EquipmentPermission))
        await session.execute(delete(Equipment))
        await session.execute(delete(User))
        await session.execute(delete(Group))
        await session.commit()
    try:
        yield
    finally:
        await _dispose_async_singletons()
        _clear_dependency_caches()


@pytest.fixture(scope="function")
async def db_session(reset_state: None) -> Iterator[AsyncSession]:
    """Yield a write-capable async DB session for seeding and assertions."""
    del reset_state
    from sampledb.db.session import get_session_factory

    factory: async_sessionmaker[AsyncSession] = get_session_factory()
    async with factory() as session:
        yield session


@pytest.fixture(scope="function")
def app_factory(integration_env: dict[str, str]) -> Callable[[], Any]:
    """Build isolated FastAPI app instances for integration tests."""
    del integration_env
    from sampledb.main import create_app

    return create_app


@pytest.fixture(scope="function")
def client_factory() -> Callable[[Any], AsyncClient]:
    """Open cookie-keeping HTTP clients; each client is one browser."""

    def _client(app: Any) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")

    return _client


@pytest.fixture(scope="function")
async def user_factory(db_session: AsyncSession) -> Callable[..., Awaitable[Any]]:
    """Create user rows through the user service."""
    from sampledb.services.user_service import get_user_service

    async def _create(
        username: str,
        password: str = "Password123!",
        approved: bool = True,
        is_admin: bool = False,
    ) -> Any:
        return await get_user_service().create_user(
            db_session=db_session,
            username=username,
            password=password,
            approved=approved,
            is_admin=is_admin,
        )

    return _create


@pytest.fixture(scope="function")
async def equipment_factory(db_session: AsyncSession) -> Callable[..., Awaitable[Any]]:
    """Create equipment rows through the equipment service."""
    from sampledb.services.equipment_service import get_equipment_service

    async def _create(name: str, location: str | None = None) -> Any:
        return await get_equipment_service().add_equipment(
            db_session=db_session, name=name, location=location
        )

    return _create


@pytest.fixture(scope="function")
async def grant(db_session: AsyncSession) -> Callable[[int, int], Awaitable[None]]:
    """Grant a user access to an equipment item."""
    from sampledb.services.permission_service import get_permission_service

    async def _grant(user_id: int, equipment_id: int) -> None:
        await get_permission_service().grant(
            db_session=db_session, user_id=user_id, equipment_id=equipment_id
        )

    return _grant


@pytest.fixture(scope="function")
def login() -> Callable[..., Awaitable[Any]]:
    """Log a client in and return the login response."""

    async def _login(client: AsyncClient, username: str, password: str = "Password123!") -> Any:
        return await client.post("/login", json={"username": username, "password": password})

    return _login

"""API test fixtures: the app wired to in-memory collaborators and SQLite."""

from collections.abc import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from hr_payroll.api.app import create_app
from hr_payroll.api.dependencies import PayrollServices


@pytest.fixture
def services(
    session_factory, directory, attendance, notifier, resolver, materializer, dispatcher
) -> PayrollServices:
    return PayrollServices(
        session_factory=session_factory,
        directory=directory,
        attendance=attendance,
        notifier=notifier,
        resolver=resolver,
        materializer=materializer,
        dispatcher=dispatcher,
    )


@pytest.fixture
def app(services: PayrollServices) -> FastAPI:
    return create_app(services)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def headers(tenant_id: UUID) -> dict[str, str]:
    return {"X-Tenant-ID": str(tenant_id), "X-User-ID": "admin-1"}

"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.collaborators.base import AttendanceClient, DirectoryClient
from hr_payroll.notifications.base import Notifier
from hr_payroll.services.dispatcher import DistributionDispatcher
from hr_payroll.services.materializer import PayslipMaterializer
from hr_payroll.services.resolver import CompensationResolver
from hr_payroll.services.run_registry import RunRegistry


@dataclass
class PayrollServices:
    """Long-lived collaborators and services shared by all requests."""

    session_factory: async_sessionmaker[AsyncSession]
    directory: DirectoryClient
    attendance: AttendanceClient
    notifier: Notifier
    resolver: CompensationResolver
    materializer: PayslipMaterializer
    dispatcher: DistributionDispatcher


def get_services(request: Request) -> PayrollServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payroll services are not initialised",
        )
    return services


Services = Annotated[PayrollServices, Depends(get_services)]


async def get_db_session(services: Services) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with services.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract tenant ID from header."""
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required",
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Tenant-ID format",
        )


async def get_actor_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> str | None:
    """Acting administrator, recorded on audit events when given."""
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
TenantId = Annotated[UUID, Depends(get_tenant_id)]
ActorId = Annotated[str | None, Depends(get_actor_id)]


def get_run_registry(db: DbSession, services: Services) -> RunRegistry:
    return RunRegistry(db, services.resolver)


def get_resolver(services: Services) -> CompensationResolver:
    return services.resolver


def get_dispatcher(services: Services) -> DistributionDispatcher:
    return services.dispatcher


Registry = Annotated[RunRegistry, Depends(get_run_registry)]
Resolver = Annotated[CompensationResolver, Depends(get_resolver)]
Dispatcher = Annotated[DistributionDispatcher, Depends(get_dispatcher)]

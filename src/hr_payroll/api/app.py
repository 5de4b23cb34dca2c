"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hr_payroll import __version__
from hr_payroll.api.dependencies import PayrollServices
from hr_payroll.api.routes import health_router, payroll_router, payslips_router
from hr_payroll.calculators import PayrollEngine, build_policies
from hr_payroll.collaborators import (
    AttendanceClient,
    DirectoryClient,
    HttpAttendanceClient,
    HttpDirectoryClient,
    InMemoryAttendance,
    InMemoryDirectory,
)
from hr_payroll.config import Settings, get_settings
from hr_payroll.database import dispose_db, init_db
from hr_payroll.notifications import build_notifier
from hr_payroll.services import (
    CompensationResolver,
    DistributionDispatcher,
    PayslipMaterializer,
)

logger = logging.getLogger(__name__)


async def build_services(settings: Settings, stack: AsyncExitStack) -> PayrollServices:
    """Wire collaborators and services from settings.

    HTTP clients are registered on ``stack`` and closed with it.
    """
    _, session_factory = init_db()
    timeout = httpx.Timeout(settings.upstream_timeout_seconds)

    directory: DirectoryClient
    if settings.directory_url:
        client = await stack.enter_async_context(
            httpx.AsyncClient(base_url=settings.directory_url, timeout=timeout)
        )
        directory = HttpDirectoryClient(client)
    else:
        logger.warning("DIRECTORY_URL not set; using an empty in-memory directory")
        directory = InMemoryDirectory()

    attendance: AttendanceClient
    if settings.attendance_url:
        client = await stack.enter_async_context(
            httpx.AsyncClient(base_url=settings.attendance_url, timeout=timeout)
        )
        attendance = HttpAttendanceClient(client)
    else:
        logger.warning("ATTENDANCE_URL not set; every employee has zero loss-of-pay days")
        attendance = InMemoryAttendance()

    pf_policy, tax_policy = build_policies(settings)
    engine = PayrollEngine(pf_policy=pf_policy, tax_policy=tax_policy, day_basis=settings.day_basis)
    resolver = CompensationResolver(
        directory, attendance, engine, concurrency=settings.resolver_concurrency
    )

    notifier = build_notifier(settings)
    materializer = PayslipMaterializer(currency_symbol=settings.currency_symbol)
    dispatcher = DistributionDispatcher(
        session_factory,
        notifier,
        materializer,
        directory=directory,
        concurrency=settings.dispatch_concurrency,
    )
    logger.info("Payroll services ready (notifier=%s)", notifier.notifier_name)

    return PayrollServices(
        session_factory=session_factory,
        directory=directory,
        attendance=attendance,
        notifier=notifier,
        resolver=resolver,
        materializer=materializer,
        dispatcher=dispatcher,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    async with AsyncExitStack() as stack:
        if getattr(app.state, "services", None) is None:
            app.state.services = await build_services(get_settings(), stack)
            stack.push_async_callback(dispose_db)
            stack.callback(setattr, app.state, "services", None)
        yield
    # Shutdown: services unset, then clients and engine closed by the exit stack


def create_app(services: PayrollServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Prebuilt services (tests); built from settings at startup
            when omitted.
    """
    app = FastAPI(
        title="HR Payroll API",
        description="Payroll run processing and payslip distribution",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(payslips_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()

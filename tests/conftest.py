"""Pytest fixtures for payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hr_payroll.calculators import (
    CompensationProfile,
    FixedAmountPolicy,
    PayPeriod,
    PayrollEngine,
    PercentOfBasicPolicy,
)
from hr_payroll.collaborators import EmployeeRecord, InMemoryAttendance, InMemoryDirectory
from hr_payroll.database import get_engine, make_session_factory
from hr_payroll.models import Base
from hr_payroll.notifications import LoggingNotifier
from hr_payroll.services import (
    CompensationResolver,
    DistributionDispatcher,
    PayslipMaterializer,
    RunRegistry,
)

NOVEMBER_2025 = PayPeriod.of(11, 2025)

EMPLOYEES = {
    "E1": (
        EmployeeRecord(
            employee_id="E1",
            employee_code="EMP001",
            first_name="Asha",
            last_name="Rao",
            designation="Engineer",
            email="asha@example.com",
        ),
        CompensationProfile(
            employee_id="E1",
            basic=Decimal("30000"),
            hra=Decimal("12000"),
            allowances=Decimal("3000"),
        ),
    ),
    "E2": (
        EmployeeRecord(
            employee_id="E2",
            employee_code="EMP002",
            first_name="Vikram",
            last_name="Singh",
            designation="Analyst",
            email="vikram@example.com",
        ),
        CompensationProfile(
            employee_id="E2",
            basic=Decimal("40000"),
            hra=Decimal("16000"),
            allowances=Decimal("4000"),
        ),
    ),
    "E3": (
        EmployeeRecord(
            employee_id="E3",
            employee_code="EMP003",
            first_name="Meera",
            last_name="Iyer",
            designation="Designer",
            email="meera@example.com",
        ),
        CompensationProfile(
            employee_id="E3",
            basic=Decimal("25000"),
            hra=Decimal("10000"),
            allowances=Decimal("2000"),
        ),
    ),
}


@pytest.fixture
def employees() -> dict[str, tuple[EmployeeRecord, CompensationProfile]]:
    return EMPLOYEES


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def period() -> PayPeriod:
    return NOVEMBER_2025


@pytest.fixture
def directory(tenant_id: UUID) -> InMemoryDirectory:
    """Directory with three salaried employees."""
    directory = InMemoryDirectory()
    directory.add_tenant(tenant_id, "Acme Corp")
    for record, profile in EMPLOYEES.values():
        directory.add_employee(tenant_id, record, profile)
    return directory


@pytest.fixture
def attendance(tenant_id: UUID, period: PayPeriod) -> InMemoryAttendance:
    """E1 has two loss-of-pay days in November 2025."""
    attendance = InMemoryAttendance()
    attendance.set_loss_of_pay(tenant_id, "E1", period, 2)
    return attendance


@pytest.fixture
def payroll_engine() -> PayrollEngine:
    """12% PF on basic and a flat 2000 tax."""
    return PayrollEngine(
        pf_policy=PercentOfBasicPolicy(rate=Decimal("0.12")),
        tax_policy=FixedAmountPolicy(Decimal("2000")),
    )


@pytest.fixture
def resolver(
    directory: InMemoryDirectory,
    attendance: InMemoryAttendance,
    payroll_engine: PayrollEngine,
) -> CompensationResolver:
    return CompensationResolver(directory, attendance, payroll_engine, concurrency=2)


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite database, one per test."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(db_engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def registry(session: AsyncSession, resolver: CompensationResolver) -> RunRegistry:
    return RunRegistry(session, resolver)


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def materializer() -> PayslipMaterializer:
    return PayslipMaterializer(currency_symbol="Rs.")


@pytest.fixture
def dispatcher(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: LoggingNotifier,
    materializer: PayslipMaterializer,
    directory: InMemoryDirectory,
) -> DistributionDispatcher:
    return DistributionDispatcher(
        session_factory,
        notifier,
        materializer,
        directory=directory,
        concurrency=2,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any payroll settings and without a .env file."""
    for name in (
        "DATABASE_URL",
        "PAYROLL_DAY_BASIS",
        "PF_RATE",
        "PF_WAGE_CEILING",
        "TAX_SLABS",
        "SMTP_HOST",
        "DIRECTORY_URL",
        "ATTENDANCE_URL",
        "RESOLVER_CONCURRENCY",
        "DISPATCH_CONCURRENCY",
        "PAYROLL_CURRENCY_SYMBOL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("hr_payroll.config.load_dotenv", lambda: None)
    return monkeypatch


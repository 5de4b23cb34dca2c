"""Compensation resolver: directory + attendance -> candidate payroll lines."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from hr_payroll.calculators.engine import (
    CalculationInputError,
    NegativeNetSalaryError,
    PayrollEngine,
)
from hr_payroll.calculators.types import (
    ZERO,
    AttendanceAdjustment,
    PayPeriod,
    PayrollLine,
)
from hr_payroll.collaborators.base import (
    AttendanceClient,
    DirectoryClient,
    EmployeeRecord,
    ProfileNotFoundError,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

# Errors that abort one employee's line; anything else aborts the resolution
LINE_ERRORS = (CalculationInputError, NegativeNetSalaryError, ProfileNotFoundError)


@dataclass
class PeriodResolution:
    """Result of resolving a tenant's period."""

    tenant_id: UUID
    period: PayPeriod
    lines: list[PayrollLine] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # employee_id -> message

    @property
    def selected_lines(self) -> list[PayrollLine]:
        return [line for line in self.lines if line.selected]

    @property
    def total_net(self) -> Decimal:
        return sum((line.net_salary for line in self.selected_lines), ZERO)


class CompensationResolver:
    """Loads pay profiles and loss-of-pay days and computes candidate lines.

    Read-only. Collaborator calls for different employees run concurrently,
    bounded by ``concurrency``; computation itself never suspends.
    """

    def __init__(
        self,
        directory: DirectoryClient,
        attendance: AttendanceClient,
        engine: PayrollEngine,
        concurrency: int = 8,
    ):
        self.directory = directory
        self.attendance = attendance
        self.engine = engine
        self.concurrency = concurrency

    async def resolve_period(
        self,
        tenant_id: UUID,
        period: PayPeriod,
        deselected: Collection[str] = (),
    ) -> list[PayrollLine]:
        """Candidate lines for every active employee, selected unless deselected.

        Raises:
            UpstreamUnavailable: If the directory or attendance service fails
        """
        resolution = await self.resolve(tenant_id, period, deselected=deselected)
        return resolution.lines

    async def resolve(
        self,
        tenant_id: UUID,
        period: PayPeriod,
        employee_ids: Collection[str] | None = None,
        deselected: Collection[str] = (),
        strict: bool = False,
    ) -> PeriodResolution:
        """Resolve and compute lines for a period.

        Args:
            employee_ids: Restrict to these employees (unknown ids are ignored)
            deselected: Employees whose line is returned with selected=False
            strict: Raise the first per-employee computation error instead of
                collecting it in ``errors`` (commit context)

        Raises:
            UpstreamUnavailable: If the directory or attendance service fails
            NegativeNetSalaryError, CalculationInputError, ProfileNotFoundError:
                Only when ``strict`` is set
        """
        resolution = PeriodResolution(tenant_id=tenant_id, period=period)

        employees = await self.directory.list_active_employees(tenant_id, period)
        if employee_ids is not None:
            wanted = set(employee_ids)
            employees = [e for e in employees if e.employee_id in wanted]

        if not employees:
            logger.info("No active employees for tenant %s in %s", tenant_id, period)
            return resolution

        semaphore = asyncio.Semaphore(self.concurrency)

        async def compute_one(employee: EmployeeRecord) -> PayrollLine:
            async with semaphore:
                return await self._compute_employee(tenant_id, period, employee)

        outcomes = await asyncio.gather(
            *(compute_one(employee) for employee in employees),
            return_exceptions=True,
        )

        # Upstream failures win over line errors; first in directory order
        for outcome in outcomes:
            if isinstance(outcome, UpstreamUnavailable):
                raise outcome

        skip = set(deselected)
        for employee, outcome in zip(employees, outcomes):
            if isinstance(outcome, LINE_ERRORS):
                if strict:
                    raise outcome
                logger.warning(
                    "Payroll line for employee %s in %s skipped: %s",
                    employee.employee_id,
                    period,
                    outcome,
                )
                resolution.errors[employee.employee_id] = str(outcome)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            resolution.lines.append(
                outcome.with_selection(employee.employee_id not in skip)
            )

        return resolution

    async def _compute_employee(
        self,
        tenant_id: UUID,
        period: PayPeriod,
        employee: EmployeeRecord,
    ) -> PayrollLine:
        profile = await self.directory.get_compensation_profile(
            tenant_id, employee.employee_id, period
        )
        lwp_days = await self.attendance.get_loss_of_pay_days(
            tenant_id, employee.employee_id, period
        )
        attendance = AttendanceAdjustment(
            employee_id=employee.employee_id,
            period=period,
            days_without_pay=lwp_days,
        )
        line = self.engine.compute(profile, attendance)
        return line.with_identity(
            employee_code=employee.employee_code,
            employee_name=employee.full_name,
            designation=employee.designation,
            email=employee.email,
        )

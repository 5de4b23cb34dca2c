"""Protocols and types for the directory and attendance collaborators.

The payroll core only reads from these services. Adapters translate
transport failures into ``UpstreamUnavailable`` so callers never see a
silent zero in place of missing data.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID

from hr_payroll.calculators.types import CompensationProfile, PayPeriod


class UpstreamUnavailable(Exception):
    """Raised when a collaborator cannot be reached or answers with an error."""

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason
        super().__init__(f"{service} unavailable: {reason}")


class EmployeeType(str, Enum):
    """Employment types accepted from the directory."""

    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"
    INTERN = "INTERN"


@dataclass(frozen=True)
class EmployeeRecord:
    """Directory view of an employee who is set up for payroll."""

    employee_id: str
    employee_code: str
    first_name: str
    last_name: str
    employee_type: EmployeeType = EmployeeType.FULL_TIME
    designation: str | None = None
    email: str | None = None

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}".strip()


class DirectoryClient(Protocol):
    """Employee/tenant directory, owner of compensation profiles."""

    async def list_active_employees(
        self, tenant_id: UUID, period: PayPeriod
    ) -> list[EmployeeRecord]:
        """Employees active in the period who have a compensation profile."""
        ...

    async def get_compensation_profile(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> CompensationProfile:
        """Profile effective at the end of the period."""
        ...

    async def get_tenant_name(self, tenant_id: UUID) -> str:
        ...


class AttendanceClient(Protocol):
    """Attendance/leave service, source of loss-of-pay days."""

    async def get_loss_of_pay_days(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> int:
        ...


class ProfileNotFoundError(LookupError):
    """Raised when an employee has no compensation profile for the period."""

    def __init__(self, employee_id: str, period: PayPeriod):
        self.employee_id = employee_id
        self.period = period
        super().__init__(f"No compensation profile for employee {employee_id} in {period}")

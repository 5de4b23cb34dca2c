"""In-memory directory and attendance collaborators.

Used for local development and tests. Replace with the HTTP clients (or any
other adapter satisfying the protocols) in production.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from hr_payroll.calculators.types import CompensationProfile, PayPeriod
from hr_payroll.collaborators.base import (
    EmployeeRecord,
    ProfileNotFoundError,
    UpstreamUnavailable,
)


class InMemoryDirectory:
    """Directory backed by dictionaries, with effective-dated profile history."""

    service_name = "directory"

    def __init__(self) -> None:
        self._tenants: dict[UUID, str] = {}
        self._employees: dict[UUID, dict[str, EmployeeRecord]] = defaultdict(dict)
        self._profiles: dict[tuple[UUID, str], list[CompensationProfile]] = defaultdict(list)
        self.available = True
        self.calls = 0

    def add_tenant(self, tenant_id: UUID, name: str) -> None:
        self._tenants[tenant_id] = name

    def add_employee(
        self,
        tenant_id: UUID,
        employee: EmployeeRecord,
        profile: CompensationProfile | None = None,
    ) -> None:
        self._employees[tenant_id][employee.employee_id] = employee
        if profile is not None:
            self.set_profile(tenant_id, profile)

    def remove_employee(self, tenant_id: UUID, employee_id: str) -> None:
        self._employees[tenant_id].pop(employee_id, None)

    def set_profile(self, tenant_id: UUID, profile: CompensationProfile) -> None:
        """Append a profile version; the latest version effective on a date wins."""
        self._profiles[(tenant_id, profile.employee_id)].append(profile)

    def _check_available(self) -> None:
        self.calls += 1
        if not self.available:
            raise UpstreamUnavailable(self.service_name, "service marked unavailable")

    def _effective_profile(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> CompensationProfile | None:
        versions = self._profiles.get((tenant_id, employee_id), [])
        active = [p for p in versions if p.is_active_on(period.end)]
        return active[-1] if active else None

    async def list_active_employees(
        self, tenant_id: UUID, period: PayPeriod
    ) -> list[EmployeeRecord]:
        self._check_available()
        return [
            employee
            for employee in self._employees.get(tenant_id, {}).values()
            if self._effective_profile(tenant_id, employee.employee_id, period) is not None
        ]

    async def get_compensation_profile(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> CompensationProfile:
        self._check_available()
        profile = self._effective_profile(tenant_id, employee_id, period)
        if profile is None:
            raise ProfileNotFoundError(employee_id, period)
        return profile

    async def get_tenant_name(self, tenant_id: UUID) -> str:
        self._check_available()
        return self._tenants.get(tenant_id, "")


class InMemoryAttendance:
    """Attendance service backed by a dictionary of loss-of-pay days."""

    service_name = "attendance"

    def __init__(self) -> None:
        self._lwp_days: dict[tuple[UUID, str, PayPeriod], int] = {}
        self.available = True
        self.unavailable_for: set[str] = set()

    def set_loss_of_pay(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod, days: int
    ) -> None:
        self._lwp_days[(tenant_id, employee_id, period)] = days

    async def get_loss_of_pay_days(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> int:
        if not self.available or employee_id in self.unavailable_for:
            raise UpstreamUnavailable(self.service_name, "service marked unavailable")
        return self._lwp_days.get((tenant_id, employee_id, period), 0)

"""HTTP adapters for the directory and attendance services.

Wire format (JSON):
- ``GET /tenants/{tenant_id}`` -> ``{"name": str}``
- ``GET /tenants/{tenant_id}/employees?month=&year=`` ->
  ``[{"employee_id", "employee_code", "first_name", "last_name",
  "employee_type", "designation", "email"}]``
- ``GET /tenants/{tenant_id}/employees/{employee_id}/compensation?month=&year=``
  -> ``{"basic", "hra", "allowances", "effective_from", "effective_to",
  "pf_amount", "tax_amount"}`` (404 when none is effective)
- ``GET /tenants/{tenant_id}/employees/{employee_id}/loss-of-pay?month=&year=``
  -> ``{"days": int}``
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

import httpx

from hr_payroll.calculators.types import CompensationProfile, PayPeriod
from hr_payroll.collaborators.base import (
    EmployeeRecord,
    EmployeeType,
    ProfileNotFoundError,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


class _JsonServiceClient:
    """Shared request handling: every transport or server error is upstream."""

    service_name = "upstream"

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("%s request %s failed: %s", self.service_name, path, e)
            raise UpstreamUnavailable(self.service_name, str(e) or type(e).__name__) from e
        if response.status_code >= 500:
            raise UpstreamUnavailable(
                self.service_name, f"{path} answered {response.status_code}"
            )
        return response

    def _json(self, response: httpx.Response, path: str) -> Any:
        if response.status_code != 200:
            raise UpstreamUnavailable(
                self.service_name, f"{path} answered {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(self.service_name, f"{path} returned invalid JSON") from e

    def _malformed(self, path: str, reason: str) -> UpstreamUnavailable:
        return UpstreamUnavailable(self.service_name, f"{path} returned malformed data: {reason}")


def _money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _optional_money(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def _optional_date(value: Any) -> date | None:
    return None if not value else date.fromisoformat(value)


class HttpDirectoryClient(_JsonServiceClient):
    """Directory service over REST."""

    service_name = "directory"

    async def list_active_employees(
        self, tenant_id: UUID, period: PayPeriod
    ) -> list[EmployeeRecord]:
        path = f"/tenants/{tenant_id}/employees"
        response = await self._get(path, {"month": period.month, "year": period.year})
        payload = self._json(response, path)
        try:
            return [
                EmployeeRecord(
                    employee_id=str(row["employee_id"]),
                    employee_code=str(row.get("employee_code") or row["employee_id"]),
                    first_name=row.get("first_name") or "",
                    last_name=row.get("last_name") or "",
                    employee_type=EmployeeType(row.get("employee_type", "FULL_TIME")),
                    designation=row.get("designation"),
                    email=row.get("email"),
                )
                for row in payload
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(path, str(e)) from e

    async def get_compensation_profile(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> CompensationProfile:
        path = f"/tenants/{tenant_id}/employees/{employee_id}/compensation"
        response = await self._get(path, {"month": period.month, "year": period.year})
        if response.status_code == 404:
            raise ProfileNotFoundError(employee_id, period)
        payload = self._json(response, path)
        try:
            return CompensationProfile(
                employee_id=employee_id,
                basic=_money(payload["basic"]),
                hra=_money(payload.get("hra")),
                allowances=_money(payload.get("allowances")),
                effective_from=_optional_date(payload.get("effective_from")),
                effective_to=_optional_date(payload.get("effective_to")),
                pf_amount=_optional_money(payload.get("pf_amount")),
                tax_amount=_optional_money(payload.get("tax_amount")),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise self._malformed(path, str(e)) from e

    async def get_tenant_name(self, tenant_id: UUID) -> str:
        path = f"/tenants/{tenant_id}"
        payload = self._json(await self._get(path), path)
        if not isinstance(payload, dict):
            raise self._malformed(path, f"expected an object, got {type(payload).__name__}")
        return str(payload.get("name") or "")


class HttpAttendanceClient(_JsonServiceClient):
    """Attendance service over REST."""

    service_name = "attendance"

    async def get_loss_of_pay_days(
        self, tenant_id: UUID, employee_id: str, period: PayPeriod
    ) -> int:
        path = f"/tenants/{tenant_id}/employees/{employee_id}/loss-of-pay"
        response = await self._get(path, {"month": period.month, "year": period.year})
        payload = self._json(response, path)
        try:
            days = payload["days"]
        except (KeyError, TypeError) as e:
            raise self._malformed(path, str(e)) from e
        if not isinstance(days, int) or isinstance(days, bool):
            raise self._malformed(path, f"days must be an integer, got {days!r}")
        return days

"""Type definitions for the calculation pipeline."""

from __future__ import annotations

import calendar
import hashlib
import json
from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0")


def round_money(amount: Decimal) -> Decimal:
    """Round to the reporting currency's minor unit, half-up."""
    return amount.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


class PayrollValidationError(ValueError):
    """Raised when a request is rejected before any I/O."""


class InvalidPeriodError(PayrollValidationError):
    """Raised for a month/year pair that is not a valid pay period."""

    def __init__(self, month: Any, year: Any):
        self.month = month
        self.year = year
        super().__init__(f"Invalid payroll period month={month!r} year={year!r}")


@dataclass(frozen=True, order=True)
class PayPeriod:
    """A calendar-month pay period."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if (
            isinstance(self.month, bool)
            or isinstance(self.year, bool)
            or not isinstance(self.month, int)
            or not isinstance(self.year, int)
            or not 1 <= self.month <= 12
            or not 1900 <= self.year <= 9999
        ):
            raise InvalidPeriodError(self.month, self.year)

    @classmethod
    def of(cls, month: int, year: int) -> PayPeriod:
        return cls(year=year, month=month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, self.calendar_days)

    @property
    def calendar_days(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def month_name(self) -> str:
        return calendar.month_name[self.month]

    @property
    def label(self) -> str:
        """Human label, e.g. 'November 2025'."""
        return f"{self.month_name} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class CompensationProfile:
    """Effective-dated pay profile, read from the directory."""

    employee_id: str
    basic: Decimal
    hra: Decimal = ZERO
    allowances: Decimal = ZERO
    effective_from: date | None = None
    effective_to: date | None = None

    # Fixed statutory figures agreed in the offer, when the tenant uses them
    pf_amount: Decimal | None = None
    tax_amount: Decimal | None = None

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if the profile is effective on a given date."""
        if self.effective_from is not None and self.effective_from > as_of_date:
            return False
        if self.effective_to is not None and self.effective_to < as_of_date:
            return False
        return True


@dataclass(frozen=True)
class AttendanceAdjustment:
    """Loss-of-pay days for one employee in one period."""

    employee_id: str
    period: PayPeriod
    days_without_pay: int = 0


@dataclass(frozen=True)
class PayrollLine:
    """Computed, not-yet-persisted payroll figures for one employee."""

    employee_id: str
    period: PayPeriod
    basic: Decimal
    hra: Decimal
    allowances: Decimal
    lwp_days: int
    lwp_deduction: Decimal
    gross_salary: Decimal
    pf: Decimal
    tax: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    selected: bool = True

    # Identity snapshot, filled in by the resolver
    employee_code: str = ""
    employee_name: str = ""
    designation: str | None = None
    email: str | None = None

    def with_identity(
        self,
        employee_code: str,
        employee_name: str,
        designation: str | None,
        email: str | None,
    ) -> PayrollLine:
        return replace(
            self,
            employee_code=employee_code,
            employee_name=employee_name,
            designation=designation,
            email=email,
        )

    def with_selection(self, selected: bool) -> PayrollLine:
        return replace(self, selected=selected)

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "employee_id": self.employee_id,
            "period": str(self.period),
            "basic": str(self.basic),
            "hra": str(self.hra),
            "allowances": str(self.allowances),
            "lwp_days": self.lwp_days,
            "lwp_deduction": str(self.lwp_deduction),
            "gross_salary": str(self.gross_salary),
            "pf": str(self.pf),
            "tax": str(self.tax),
            "total_deductions": str(self.total_deductions),
            "net_salary": str(self.net_salary),
        }

    def fingerprint(self) -> str:
        """SHA-256 of the canonical figures; identical inputs give identical hashes."""
        json_str = json.dumps(self.to_canonical_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

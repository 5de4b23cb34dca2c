"""Payroll computation engine: profile + attendance -> payroll line."""

from __future__ import annotations

from decimal import Decimal

from hr_payroll.calculators.policies import DeductionPolicy, FixedAmountPolicy
from hr_payroll.calculators.types import (
    ZERO,
    AttendanceAdjustment,
    CompensationProfile,
    PayPeriod,
    PayrollLine,
    round_money,
)


class CalculationInputError(ValueError):
    """Raised when profile or attendance data violates its own invariants."""

    def __init__(self, employee_id: str, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Invalid calculation input for employee {employee_id}: {reason}")


class NegativeNetSalaryError(ArithmeticError):
    """Raised when deductions exceed gross salary. Never clamped."""

    def __init__(self, employee_id: str, period: PayPeriod, net_salary: Decimal):
        self.employee_id = employee_id
        self.period = period
        self.net_salary = net_salary
        super().__init__(
            f"Net salary for employee {employee_id} in {period} is negative "
            f"({net_salary})"
        )


class PayrollEngine:
    """Pure payroll computation.

    Pipeline (stable order per employee):
    1) Round inputs to the minor unit and validate them
    2) LWP deduction = basic / days_in_period * lwp_days, half-up
    3) Gross = basic + hra + allowances - LWP deduction
    4) PF and tax from the configured policies
    5) Net = gross - PF - tax, asserted non-negative

    The engine holds only its policies and day basis; identical inputs
    always produce identical lines.
    """

    def __init__(
        self,
        pf_policy: DeductionPolicy | None = None,
        tax_policy: DeductionPolicy | None = None,
        day_basis: int | None = None,
    ):
        self.pf_policy = pf_policy or FixedAmountPolicy()
        self.tax_policy = tax_policy or FixedAmountPolicy()
        self.day_basis = day_basis

    def days_in_period(self, period: PayPeriod) -> int:
        """Divisor for per-day pay: a fixed basis if configured, else calendar days."""
        return self.day_basis if self.day_basis is not None else period.calendar_days

    def compute(
        self,
        profile: CompensationProfile,
        attendance: AttendanceAdjustment,
    ) -> PayrollLine:
        """Compute one employee's payroll line for the attendance period.

        Raises:
            CalculationInputError: If inputs violate their invariants
            NegativeNetSalaryError: If deductions exceed gross salary
        """
        employee_id = profile.employee_id
        period = attendance.period
        if attendance.employee_id != employee_id:
            raise CalculationInputError(
                employee_id,
                f"attendance belongs to employee {attendance.employee_id}",
            )

        basic = round_money(Decimal(profile.basic))
        hra = round_money(Decimal(profile.hra))
        allowances = round_money(Decimal(profile.allowances))
        for name, value in (("basic", basic), ("hra", hra), ("allowances", allowances)):
            if value < 0:
                raise CalculationInputError(employee_id, f"{name} is negative ({value})")

        days = self.days_in_period(period)
        lwp_days = attendance.days_without_pay
        if not 0 <= lwp_days <= days:
            raise CalculationInputError(
                employee_id,
                f"loss-of-pay days {lwp_days} outside 0..{days}",
            )

        lwp_deduction = round_money(basic / Decimal(days) * Decimal(lwp_days))
        gross_salary = basic + hra + allowances - lwp_deduction

        pf = self._apply_policy(self.pf_policy, "pf", gross_salary, profile)
        tax = self._apply_policy(self.tax_policy, "tax", gross_salary, profile)
        total_deductions = pf + tax
        net_salary = gross_salary - total_deductions

        if net_salary < 0:
            raise NegativeNetSalaryError(employee_id, period, net_salary)

        return PayrollLine(
            employee_id=employee_id,
            period=period,
            basic=basic,
            hra=hra,
            allowances=allowances,
            lwp_days=lwp_days,
            lwp_deduction=lwp_deduction,
            gross_salary=gross_salary,
            pf=pf,
            tax=tax,
            total_deductions=total_deductions,
            net_salary=net_salary,
        )

    @staticmethod
    def _apply_policy(
        policy: DeductionPolicy,
        name: str,
        gross_salary: Decimal,
        profile: CompensationProfile,
    ) -> Decimal:
        amount = round_money(Decimal(policy(gross_salary, profile)))
        if amount < ZERO:
            raise CalculationInputError(
                profile.employee_id, f"{name} policy returned a negative amount ({amount})"
            )
        return amount

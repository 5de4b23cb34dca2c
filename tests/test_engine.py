"""Unit tests for PayrollEngine.

The engine is pure, so these tests need no database or collaborators.
"""

from decimal import Decimal

import pytest

from hr_payroll.calculators.engine import (
    CalculationInputError,
    NegativeNetSalaryError,
    PayrollEngine,
)
from hr_payroll.calculators.policies import FixedAmountPolicy, PercentOfBasicPolicy
from hr_payroll.calculators.types import AttendanceAdjustment, CompensationProfile, PayPeriod

NOVEMBER = PayPeriod.of(11, 2025)
FEBRUARY = PayPeriod.of(2, 2024)


def make_engine(**kwargs) -> PayrollEngine:
    return PayrollEngine(
        pf_policy=PercentOfBasicPolicy(rate=Decimal("0.12")),
        tax_policy=FixedAmountPolicy(Decimal("2000")),
        **kwargs,
    )


def profile(basic="30000", hra="12000", allowances="3000", **kwargs) -> CompensationProfile:
    return CompensationProfile(
        employee_id="E1",
        basic=Decimal(basic),
        hra=Decimal(hra),
        allowances=Decimal(allowances),
        **kwargs,
    )


def lwp(days: int, period: PayPeriod = NOVEMBER, employee_id: str = "E1") -> AttendanceAdjustment:
    return AttendanceAdjustment(employee_id=employee_id, period=period, days_without_pay=days)


class TestWorkedExample:
    """The reference employee: 30000 basic, 2 LWP days in November."""

    def test_line_figures(self):
        line = make_engine().compute(profile(), lwp(2))

        assert line.lwp_deduction == Decimal("2000.00")
        assert line.gross_salary == Decimal("43000.00")
        assert line.pf == Decimal("3600.00")
        assert line.tax == Decimal("2000.00")
        assert line.total_deductions == Decimal("5600.00")
        assert line.net_salary == Decimal("37400.00")
        assert line.lwp_days == 2
        assert line.selected is True

    def test_conservation(self):
        line = make_engine().compute(profile(), lwp(2))

        assert line.gross_salary == line.basic + line.hra + line.allowances - line.lwp_deduction
        assert line.total_deductions == line.pf + line.tax
        assert line.net_salary == line.gross_salary - line.total_deductions


class TestDeterminism:
    """Identical inputs must give identical lines."""

    def test_repeated_compute_is_identical(self):
        engine = make_engine()
        first = engine.compute(profile(), lwp(2))
        second = engine.compute(profile(), lwp(2))

        assert first == second
        assert first.fingerprint() == second.fingerprint()

    def test_fingerprint_changes_with_inputs(self):
        engine = make_engine()

        assert (
            engine.compute(profile(), lwp(2)).fingerprint()
            != engine.compute(profile(), lwp(3)).fingerprint()
        )


class TestLossOfPay:
    """Pro-rata deduction from basic pay."""

    def test_no_lwp_days(self):
        line = make_engine().compute(profile(), lwp(0))

        assert line.lwp_deduction == Decimal("0.00")
        assert line.gross_salary == Decimal("45000.00")

    def test_calendar_days_are_the_default_basis(self):
        # February 2024 has 29 days: 29000 / 29 = 1000 per day
        line = make_engine().compute(profile(basic="29000"), lwp(1, FEBRUARY))

        assert line.lwp_deduction == Decimal("1000.00")

    def test_fixed_day_basis(self):
        line = make_engine(day_basis=30).compute(profile(basic="29000"), lwp(1, FEBRUARY))

        # 29000 / 30 = 966.666... -> 966.67 half-up
        assert line.lwp_deduction == Decimal("966.67")

    def test_rounds_half_up(self):
        # 100.10 / 4 = 25.025 -> 25.03
        line = PayrollEngine(day_basis=4).compute(
            profile(basic="100.10", hra="0", allowances="0"), lwp(1)
        )

        assert line.lwp_deduction == Decimal("25.03")

    def test_full_month_without_pay(self):
        line = PayrollEngine().compute(profile(hra="0", allowances="0"), lwp(30))

        assert line.lwp_deduction == Decimal("30000.00")
        assert line.gross_salary == Decimal("0.00")
        assert line.net_salary == Decimal("0.00")

    def test_lwp_days_above_period_rejected(self):
        with pytest.raises(CalculationInputError) as exc_info:
            make_engine().compute(profile(), lwp(31))

        assert exc_info.value.employee_id == "E1"

    def test_negative_lwp_days_rejected(self):
        with pytest.raises(CalculationInputError):
            make_engine().compute(profile(), lwp(-1))


class TestInputValidation:
    """Profile data that breaks its own invariants."""

    def test_negative_basic_rejected(self):
        with pytest.raises(CalculationInputError, match="basic"):
            make_engine().compute(profile(basic="-1"), lwp(0))

    def test_negative_allowances_rejected(self):
        with pytest.raises(CalculationInputError, match="allowances"):
            make_engine().compute(profile(allowances="-0.01"), lwp(0))

    def test_attendance_for_other_employee_rejected(self):
        with pytest.raises(CalculationInputError):
            make_engine().compute(profile(), lwp(0, employee_id="E2"))

    def test_negative_policy_result_rejected(self):
        engine = PayrollEngine(tax_policy=FixedAmountPolicy(Decimal("-5")))

        with pytest.raises(CalculationInputError, match="tax"):
            engine.compute(profile(), lwp(0))


class TestNegativeNet:
    """Deductions above gross are an error, never clamped."""

    def test_negative_net_raises(self):
        engine = PayrollEngine(tax_policy=FixedAmountPolicy(Decimal("5000")))

        with pytest.raises(NegativeNetSalaryError) as exc_info:
            engine.compute(profile(basic="3000", hra="0", allowances="0"), lwp(0))

        assert exc_info.value.net_salary == Decimal("-2000.00")
        assert exc_info.value.period == NOVEMBER

    def test_zero_net_is_allowed(self):
        engine = PayrollEngine(tax_policy=FixedAmountPolicy(Decimal("3000")))

        line = engine.compute(profile(basic="3000", hra="0", allowances="0"), lwp(0))

        assert line.net_salary == Decimal("0.00")


class TestDefaultPolicies:
    """An engine built without policies deducts nothing."""

    def test_default_policies_are_zero(self):
        line = PayrollEngine().compute(profile(), lwp(0))

        assert line.pf == Decimal("0.00")
        assert line.tax == Decimal("0.00")
        assert line.net_salary == line.gross_salary

"""Payroll calculation engine."""

from hr_payroll.calculators.engine import (
    CalculationInputError,
    NegativeNetSalaryError,
    PayrollEngine,
)
from hr_payroll.calculators.policies import (
    DeductionPolicy,
    FixedAmountPolicy,
    PercentOfBasicPolicy,
    ProfileAmountPolicy,
    SlabRatePolicy,
    TaxSlab,
    build_policies,
)
from hr_payroll.calculators.types import (
    AttendanceAdjustment,
    CompensationProfile,
    InvalidPeriodError,
    PayPeriod,
    PayrollLine,
    PayrollValidationError,
    round_money,
)

__all__ = [
    "AttendanceAdjustment",
    "CalculationInputError",
    "CompensationProfile",
    "DeductionPolicy",
    "FixedAmountPolicy",
    "InvalidPeriodError",
    "NegativeNetSalaryError",
    "PayPeriod",
    "PayrollEngine",
    "PayrollLine",
    "PayrollValidationError",
    "PercentOfBasicPolicy",
    "ProfileAmountPolicy",
    "SlabRatePolicy",
    "TaxSlab",
    "build_policies",
    "round_money",
]

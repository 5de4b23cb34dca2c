"""Pluggable PF and tax policies.

A policy is any deterministic, side-effect-free callable
``(gross_salary, profile) -> Decimal``. The engine rounds and validates what
a policy returns; policies never see or mutate engine state.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from hr_payroll.calculators.types import ZERO, CompensationProfile, round_money

if TYPE_CHECKING:
    from hr_payroll.config import Settings


class DeductionPolicy(Protocol):
    """Protocol for statutory deduction policies."""

    def __call__(self, gross_salary: Decimal, profile: CompensationProfile) -> Decimal:
        ...


@dataclass(frozen=True)
class FixedAmountPolicy:
    """Same amount for every employee."""

    amount: Decimal = ZERO

    def __call__(self, gross_salary: Decimal, profile: CompensationProfile) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class PercentOfBasicPolicy:
    """Rate applied to basic pay, optionally capped at a wage ceiling (PF style)."""

    rate: Decimal
    wage_ceiling: Decimal | None = None

    def __call__(self, gross_salary: Decimal, profile: CompensationProfile) -> Decimal:
        wages = profile.basic
        if self.wage_ceiling is not None:
            wages = min(wages, self.wage_ceiling)
        return round_money(wages * self.rate)


@dataclass(frozen=True)
class TaxSlab:
    """One progressive slab: ``rate`` applies to income above ``lower``."""

    lower: Decimal
    rate: Decimal


@dataclass(frozen=True)
class SlabRatePolicy:
    """Progressive slab tax on gross salary for the period."""

    slabs: tuple[TaxSlab, ...]

    def __post_init__(self) -> None:
        for slab in self.slabs:
            if slab.lower < 0 or not ZERO <= slab.rate <= Decimal("1"):
                raise ValueError(f"Invalid tax slab {slab}")

    @classmethod
    def from_pairs(cls, pairs: tuple[tuple[Decimal, Decimal], ...]) -> SlabRatePolicy:
        return cls(tuple(TaxSlab(lower=lower, rate=rate) for lower, rate in pairs))

    def __call__(self, gross_salary: Decimal, profile: CompensationProfile) -> Decimal:
        if gross_salary <= 0 or not self.slabs:
            return ZERO

        ordered = sorted(self.slabs, key=lambda s: s.lower)
        total = ZERO
        for i, slab in enumerate(ordered):
            if gross_salary <= slab.lower:
                break
            upper = ordered[i + 1].lower if i + 1 < len(ordered) else gross_salary
            taxable = min(gross_salary, upper) - slab.lower
            if taxable > 0:
                total += taxable * slab.rate
        return round_money(total)


@dataclass(frozen=True)
class ProfileAmountPolicy:
    """Use the fixed figure on the profile (``pf_amount``/``tax_amount``) when set."""

    attribute: str
    fallback: DeductionPolicy

    def __call__(self, gross_salary: Decimal, profile: CompensationProfile) -> Decimal:
        fixed = getattr(profile, self.attribute)
        if fixed is not None:
            return fixed
        return self.fallback(gross_salary, profile)


def build_policies(settings: Settings) -> tuple[DeductionPolicy, DeductionPolicy]:
    """Build the (pf, tax) policies configured for this deployment."""
    pf_policy = ProfileAmountPolicy(
        "pf_amount",
        PercentOfBasicPolicy(rate=settings.pf_rate, wage_ceiling=settings.pf_wage_ceiling),
    )
    tax_policy = ProfileAmountPolicy(
        "tax_amount",
        SlabRatePolicy.from_pairs(settings.tax_slabs),
    )
    return pf_policy, tax_policy

"""Payroll run, payslip and audit models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import MONEY, Base, TimestampMixin


class RunStatus(str, Enum):
    """Persisted run status. A run row exists only once it is processed."""

    PROCESSED = "PROCESSED"


class DistributionStatus(str, Enum):
    """Per-payslip distribution status."""

    NOT_SENT = "NOT_SENT"
    SENT = "SENT"
    FAILED = "FAILED"


class PayrollRun(Base, TimestampMixin):
    """Immutable, period-scoped payroll run (one per tenant and month)."""

    __tablename__ = "payroll_run"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=RunStatus.PROCESSED.value
    )
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False)
    total_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_net: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    processed_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "month", "year", name="payroll_run_tenant_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_run_month_check"),
        CheckConstraint("status IN ('PROCESSED')", name="payroll_run_status_check"),
        CheckConstraint("total_employees > 0", name="payroll_run_employees_check"),
    )

    items: Mapped[list[PayrollRunItem]] = relationship(
        back_populates="run", order_by="PayrollRunItem.employee_code"
    )


class PayrollRunItem(Base, TimestampMixin):
    """Payslip: one employee's frozen figures within a run."""

    __tablename__ = "payroll_run_item"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Identity snapshot
    employee_id: Mapped[str] = mapped_column(String, nullable=False)
    employee_code: Mapped[str] = mapped_column(String, nullable=False)
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    designation: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)

    # Frozen figures
    basic: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    hra: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    allowances: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    lwp_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lwp_deduction: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    pf: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    calculation_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Distribution
    distribution_status: Mapped[str] = mapped_column(
        String, nullable=False, default=DistributionStatus.NOT_SENT.value
    )
    distribution_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_distributed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_distribution_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("run_id", "employee_id", name="payroll_run_item_employee_unique"),
        CheckConstraint("net_salary >= 0", name="payroll_run_item_net_check"),
        CheckConstraint(
            "distribution_status IN ('NOT_SENT', 'SENT', 'FAILED')",
            name="payroll_run_item_distribution_check",
        ),
    )

    run: Mapped[PayrollRun] = relationship(back_populates="items")


class AuditEvent(Base, TimestampMixin):
    """Append-only payroll activity log."""

    __tablename__ = "payroll_audit_event"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    target_employee_id: Mapped[str | None] = mapped_column(String, nullable=True)
    run_id: Mapped[UUID | None] = mapped_column(nullable=True)

"""ORM models owned by the run registry."""

from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.payroll import (
    AuditEvent,
    DistributionStatus,
    PayrollRun,
    PayrollRunItem,
    RunStatus,
)

__all__ = [
    "AuditEvent",
    "Base",
    "DistributionStatus",
    "PayrollRun",
    "PayrollRunItem",
    "RunStatus",
    "TimestampMixin",
]

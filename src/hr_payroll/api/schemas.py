"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll period / run schemas
# ============================================================================


class PayrollLineResponse(BaseModel):
    """Computed, not-yet-committed payroll line for one employee."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    employee_code: str
    employee_name: str
    designation: str | None = None
    email: str | None = None
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


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    month: int
    year: int
    status: str
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    processed_by: str | None = None
    created_at: datetime


class PeriodResponse(BaseModel):
    """State of a payroll period: the committed run, or a fresh preview."""

    month: int
    year: int
    is_processed: bool
    run_details: PayrollRunResponse | None = None
    employees: list[PayrollLineResponse] = []
    errors: dict[str, str] = {}
    selected_total_net: Decimal = Decimal("0")


class RunCommitRequest(BaseModel):
    """Schema for committing a period's payroll."""

    model_config = ConfigDict(populate_by_name=True)

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)
    employee_ids: list[str] = Field(alias="employeeIds")


class RunCommitResponse(BaseModel):
    """Schema for a successful commit."""

    payroll_run: PayrollRunResponse
    message: str


class RunVerificationResponse(BaseModel):
    """Integrity report for a persisted run."""

    run_id: UUID
    is_valid: bool
    errors: list[str]


# ============================================================================
# Payslip schemas
# ============================================================================


class PayslipResponse(BaseModel):
    """Schema for payslip (payroll run item) response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    run_id: UUID
    month: int
    year: int
    employee_id: str
    employee_code: str
    employee_name: str
    designation: str | None = None
    email: str | None = None
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
    calculation_hash: str
    distribution_status: str
    distribution_attempts: int
    last_distributed_at: datetime | None = None
    last_distribution_error: str | None = None
    created_at: datetime


class SendAllRequest(BaseModel):
    """Schema for sending every payslip of a period."""

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)


class DistributionOutcomeResponse(BaseModel):
    """Result of one send attempt."""

    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    employee_id: str
    accepted: bool
    status: str
    error: str | None = None


class SendResponse(BaseModel):
    """Schema for a single payslip send."""

    message: str
    outcome: DistributionOutcomeResponse


class BatchOutcomeResponse(BaseModel):
    """Summary of a run-wide send."""

    message: str
    run_id: UUID
    sent: int
    failed: int
    failed_employee_ids: list[str]
    outcomes: list[DistributionOutcomeResponse]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str | dict[str, Any]
    code: str | None = None

"""Run registry: idempotent, all-or-nothing commit of a period's payroll."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.types import (
    ZERO,
    PayPeriod,
    PayrollLine,
    PayrollValidationError,
)
from hr_payroll.database import period_lock, period_lock_key
from hr_payroll.models import AuditEvent, PayrollRun, PayrollRunItem, RunStatus
from hr_payroll.services.resolver import CompensationResolver
from hr_payroll.services.state_machine import RunState, RunStateMachine

logger = logging.getLogger(__name__)


class RunAlreadyProcessed(Exception):
    """Raised when a run already exists for the tenant and period."""

    def __init__(self, run: PayrollRun):
        self.run = run
        super().__init__(
            f"Payroll for {run.year:04d}-{run.month:02d} has already been processed "
            f"(run {run.id})"
        )


class NoEmployeesFound(Exception):
    """Raised when none of the selected employees can be paid for the period."""

    def __init__(self, tenant_id: UUID, period: PayPeriod):
        self.tenant_id = tenant_id
        self.period = period
        super().__init__(f"No valid employees selected for {period}")


class RunNotFound(LookupError):
    """Raised when a run does not exist for the tenant."""

    def __init__(self, run_id: UUID):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


class PayslipNotFound(LookupError):
    """Raised when a payslip does not exist for the tenant."""

    def __init__(self, item_id: UUID | None = None, employee_id: str | None = None):
        self.item_id = item_id
        self.employee_id = employee_id
        if item_id is not None:
            super().__init__(f"Payslip {item_id} not found")
        else:
            super().__init__(f"No payslip found for employee {employee_id}")


class RunRegistry:
    """Owner of PayrollRun and PayrollRunItem rows.

    Key invariants:
    1. Exactly one run per (tenant_id, month, year) - unique constraint,
       with commits for a period serialized by ``period_lock``
    2. A run and all of its items are written in one transaction
    3. Figures are recomputed from source data at commit; client-supplied
       amounts never reach persistence
    4. Rows are never updated after commit, except payslip distribution
       fields owned by the dispatcher
    """

    def __init__(self, session: AsyncSession, resolver: CompensationResolver | None = None):
        self.session = session
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit_run(
        self,
        tenant_id: UUID,
        period: PayPeriod,
        selected_employee_ids: Collection[str],
        actor_id: str | None = None,
    ) -> PayrollRun:
        """Create the period's run from freshly computed lines.

        Raises:
            PayrollValidationError: If the selection is empty
            RunAlreadyProcessed: If a run exists for the period (no writes)
            NoEmployeesFound: If no selected employee resolves to a line
            UpstreamUnavailable: If a collaborator fails during recomputation
            NegativeNetSalaryError, CalculationInputError, ProfileNotFoundError:
                If any selected employee cannot be computed
        """
        if self.resolver is None:
            raise RuntimeError("RunRegistry needs a resolver to commit runs")

        employee_ids = {str(e) for e in selected_employee_ids if str(e).strip()}
        if not employee_ids:
            raise PayrollValidationError("At least one employee must be selected")

        # Fail fast without touching collaborators
        existing = await self.get_run(tenant_id, period)
        if existing is not None:
            raise await self._reject(existing)

        resolution = await self.resolver.resolve(
            tenant_id, period, employee_ids=employee_ids, strict=True
        )
        lines = resolution.lines
        if not lines:
            raise NoEmployeesFound(tenant_id, period)

        try:
            async with period_lock(self.session, period_lock_key(tenant_id, period.month, period.year)):
                existing = await self.get_run(tenant_id, period)
                state = RunStateMachine.state_of(existing)
                if not RunStateMachine.can_transition(state, RunState.PROCESSED):
                    raise await self._reject(existing)

                run = self._build_run(tenant_id, period, lines, actor_id)
                self.session.add(run)
                self.session.add_all(self._build_items(run, lines))
                self.session.add(
                    AuditEvent(
                        tenant_id=tenant_id,
                        action="PAYROLL_PROCESSED",
                        description=(
                            f"Processed payroll for {period.month}/{period.year} "
                            f"for {run.total_employees} employees."
                        ),
                        actor_id=actor_id,
                        run_id=run.id,
                    )
                )
                await self.session.commit()
        except RunAlreadyProcessed:
            raise
        except IntegrityError as e:
            await self.session.rollback()
            existing = await self.get_run(tenant_id, period)
            if existing is None:
                raise
            logger.info("Concurrent commit for %s tenant %s lost the race", period, tenant_id)
            raise RunAlreadyProcessed(existing) from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Committed payroll run %s for tenant %s %s: employees=%d gross=%s net=%s",
            run.id,
            tenant_id,
            period,
            run.total_employees,
            run.total_gross,
            run.total_net,
        )
        return run

    async def _reject(self, existing: PayrollRun) -> RunAlreadyProcessed:
        # Detach first so the rollback does not expire the row handed to callers
        self.session.expunge(existing)
        await self.session.rollback()
        logger.info(
            "Commit rejected: %04d-%02d for tenant %s already processed as run %s",
            existing.year,
            existing.month,
            existing.tenant_id,
            existing.id,
        )
        return RunAlreadyProcessed(existing)

    @staticmethod
    def _build_run(
        tenant_id: UUID,
        period: PayPeriod,
        lines: Sequence[PayrollLine],
        actor_id: str | None,
    ) -> PayrollRun:
        total_gross = sum((line.gross_salary for line in lines), ZERO)
        total_deductions = sum((line.total_deductions for line in lines), ZERO)
        total_net = sum((line.net_salary for line in lines), ZERO)
        return PayrollRun(
            id=uuid4(),
            tenant_id=tenant_id,
            month=period.month,
            year=period.year,
            status=RunStatus.PROCESSED.value,
            total_employees=len(lines),
            total_gross=total_gross,
            total_deductions=total_deductions,
            total_net=total_net,
            processed_by=actor_id,
        )

    @staticmethod
    def _build_items(run: PayrollRun, lines: Sequence[PayrollLine]) -> list[PayrollRunItem]:
        return [
            PayrollRunItem(
                id=uuid4(),
                run_id=run.id,
                tenant_id=run.tenant_id,
                month=run.month,
                year=run.year,
                employee_id=line.employee_id,
                employee_code=line.employee_code or line.employee_id,
                employee_name=line.employee_name or line.employee_id,
                designation=line.designation,
                email=line.email,
                basic=line.basic,
                hra=line.hra,
                allowances=line.allowances,
                lwp_days=line.lwp_days,
                lwp_deduction=line.lwp_deduction,
                gross_salary=line.gross_salary,
                pf=line.pf,
                tax=line.tax,
                total_deductions=line.total_deductions,
                net_salary=line.net_salary,
                calculation_hash=line.fingerprint(),
                distribution_status="NOT_SENT",
                distribution_attempts=0,
            )
            for line in lines
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_run(self, tenant_id: UUID, period: PayPeriod) -> PayrollRun | None:
        """The period's run, or None when payroll has not been run."""
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.tenant_id == tenant_id,
                PayrollRun.month == period.month,
                PayrollRun.year == period.year,
            )
        )
        return result.scalar_one_or_none()

    async def get_run_by_id(self, tenant_id: UUID, run_id: UUID) -> PayrollRun:
        run = await self.session.get(PayrollRun, run_id)
        if run is None or run.tenant_id != tenant_id:
            raise RunNotFound(run_id)
        return run

    async def list_items(self, run_id: UUID) -> list[PayrollRunItem]:
        """Payslips of a run, ordered by employee code."""
        result = await self.session.execute(
            select(PayrollRunItem)
            .where(PayrollRunItem.run_id == run_id)
            .order_by(PayrollRunItem.employee_code, PayrollRunItem.employee_id)
        )
        return list(result.scalars().all())

    async def get_item(self, tenant_id: UUID, item_id: UUID) -> PayrollRunItem:
        item = await self.session.get(PayrollRunItem, item_id)
        if item is None or item.tenant_id != tenant_id:
            raise PayslipNotFound(item_id)
        return item

    async def list_payslips(self, tenant_id: UUID, period: PayPeriod) -> list[PayrollRunItem]:
        """Payslips for the period; empty when payroll has not been run."""
        run = await self.get_run(tenant_id, period)
        if run is None:
            return []
        return await self.list_items(run.id)

    async def latest_item_for_employee(
        self, tenant_id: UUID, employee_id: str
    ) -> PayrollRunItem | None:
        """Most recent payslip of an employee across periods."""
        result = await self.session.execute(
            select(PayrollRunItem)
            .where(
                PayrollRunItem.tenant_id == tenant_id,
                PayrollRunItem.employee_id == employee_id,
            )
            .order_by(PayrollRunItem.year.desc(), PayrollRunItem.month.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def verify_run(self, run_id: UUID) -> tuple[bool, list[str]]:
        """Check a persisted run's totals against its items.

        Returns (is_valid, list_of_errors).
        """
        errors: list[str] = []

        run = await self.session.get(PayrollRun, run_id)
        if run is None:
            return False, ["Run not found"]

        items = await self.list_items(run_id)

        if run.total_employees != len(items):
            errors.append(
                f"Employee count mismatch: run shows {run.total_employees}, "
                f"found {len(items)} payslips"
            )

        sums: dict[str, Decimal] = {
            "gross": sum((i.gross_salary for i in items), ZERO),
            "deductions": sum((i.total_deductions for i in items), ZERO),
            "net": sum((i.net_salary for i in items), ZERO),
        }
        for name, expected in (
            ("gross", run.total_gross),
            ("deductions", run.total_deductions),
            ("net", run.total_net),
        ):
            if sums[name] != expected:
                errors.append(
                    f"Total {name} mismatch: run shows {expected}, items sum to {sums[name]}"
                )

        if run.total_gross - run.total_deductions != run.total_net:
            errors.append("Run totals do not satisfy gross - deductions = net")

        for item in items:
            if item.gross_salary - item.total_deductions != item.net_salary:
                errors.append(f"Payslip {item.id}: gross - deductions != net")
            if item.pf + item.tax != item.total_deductions:
                errors.append(f"Payslip {item.id}: pf + tax != total deductions")

        return len(errors) == 0, errors

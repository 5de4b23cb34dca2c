"""Distribution dispatcher: renders and sends payslips, records outcomes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.calculators.types import PayPeriod
from hr_payroll.collaborators.base import DirectoryClient, UpstreamUnavailable
from hr_payroll.models import AuditEvent, DistributionStatus, PayrollRunItem
from hr_payroll.models.base import utcnow
from hr_payroll.notifications.base import NotificationError, Notifier
from hr_payroll.services.materializer import (
    ArtifactRenderError,
    Document,
    PayslipMaterializer,
    email_subject,
)
from hr_payroll.services.run_registry import PayslipNotFound, RunRegistry
from hr_payroll.services.state_machine import DistributionStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistributionOutcome:
    """Result of one send attempt for one payslip."""

    payslip_id: UUID
    employee_id: str
    accepted: bool
    status: DistributionStatus
    error: str | None = None


@dataclass
class BatchOutcome:
    """Counts and per-payslip outcomes of a run-wide send."""

    run_id: UUID
    sent: int = 0
    failed: int = 0
    outcomes: list[DistributionOutcome] = field(default_factory=list)

    @property
    def failed_employee_ids(self) -> list[str]:
        return [o.employee_id for o in self.outcomes if not o.accepted]


class DistributionDispatcher:
    """Sends committed payslips through the notifier.

    Payroll figures are never modified here; only the distribution fields
    of a payslip are updated, one short transaction per attempt, so a batch
    interrupted part way leaves every completed send recorded.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        materializer: PayslipMaterializer,
        directory: DirectoryClient | None = None,
        concurrency: int = 4,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.materializer = materializer
        self.directory = directory
        self.concurrency = concurrency

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def send_one(
        self,
        tenant_id: UUID,
        payslip_id: UUID,
        actor_id: str | None = None,
    ) -> DistributionOutcome:
        """Render and send one payslip, then record the attempt.

        Raises:
            PayslipNotFound: If the payslip does not exist for the tenant
        """
        async with self.session_factory() as session:
            item = await RunRegistry(session).get_item(tenant_id, payslip_id)

        materializer = await self.materializer_for(tenant_id)
        accepted, error = await self._attempt(materializer, item)
        outcome = await self._record(tenant_id, item, accepted, error, actor_id, audit=True)

        if accepted:
            logger.info("Payslip %s sent to employee %s", item.id, item.employee_id)
        else:
            logger.warning(
                "Payslip %s for employee %s not sent: %s", item.id, item.employee_id, error
            )
        return outcome

    async def send_batch(
        self,
        tenant_id: UUID,
        run_id: UUID,
        actor_id: str | None = None,
    ) -> BatchOutcome:
        """Send every payslip of a run, isolating failures per recipient.

        Raises:
            RunNotFound: If the run does not exist for the tenant
        """
        async with self.session_factory() as session:
            registry = RunRegistry(session)
            run = await registry.get_run_by_id(tenant_id, run_id)
            items = await registry.list_items(run.id)

        materializer = await self.materializer_for(tenant_id)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def deliver(item: PayrollRunItem) -> DistributionOutcome:
            async with semaphore:
                accepted, error = await self._attempt(materializer, item)
                try:
                    return await self._record(tenant_id, item, accepted, error, actor_id)
                except Exception as e:
                    # The row keeps its last recorded state; other sends go on
                    logger.exception(
                        "Could not record send of payslip %s for employee %s",
                        item.id,
                        item.employee_id,
                    )
                    return DistributionOutcome(
                        payslip_id=item.id,
                        employee_id=item.employee_id,
                        accepted=False,
                        status=DistributionStatus(item.distribution_status),
                        error=str(e) or type(e).__name__,
                    )

        outcomes = await asyncio.gather(*(deliver(item) for item in items))

        batch = BatchOutcome(run_id=run.id, outcomes=list(outcomes))
        batch.sent = sum(1 for o in outcomes if o.accepted)
        batch.failed = len(outcomes) - batch.sent

        period = PayPeriod.of(run.month, run.year)
        async with self.session_factory() as session:
            session.add(
                AuditEvent(
                    tenant_id=tenant_id,
                    action="PAYSLIP_SENT_ALL",
                    description=(
                        f"Sent payslips for {period.month}/{period.year}: "
                        f"{batch.sent} sent, {batch.failed} failed."
                    ),
                    actor_id=actor_id,
                    run_id=run.id,
                )
            )
            await session.commit()

        logger.info(
            "Payslip batch for run %s (%s): sent=%d failed=%d",
            run.id,
            period,
            batch.sent,
            batch.failed,
        )
        return batch

    async def download(self, tenant_id: UUID, payslip_id: UUID) -> Document:
        """Render a payslip for download. Does not touch distribution state.

        Raises:
            PayslipNotFound: If the payslip does not exist for the tenant
            ArtifactRenderError: If the row cannot be rendered
        """
        async with self.session_factory() as session:
            item = await RunRegistry(session).get_item(tenant_id, payslip_id)
        materializer = await self.materializer_for(tenant_id)
        return materializer.render_artifact(item)

    async def download_latest(self, tenant_id: UUID, employee_id: str) -> Document:
        """Render an employee's most recent payslip.

        Raises:
            PayslipNotFound: If the employee has no payslip yet
        """
        async with self.session_factory() as session:
            item = await RunRegistry(session).latest_item_for_employee(tenant_id, employee_id)
        if item is None:
            raise PayslipNotFound(employee_id=employee_id)
        materializer = await self.materializer_for(tenant_id)
        return materializer.render_artifact(item)

    async def materializer_for(self, tenant_id: UUID) -> PayslipMaterializer:
        """Materializer branded with the tenant's name when the directory knows it."""
        if self.directory is None:
            return self.materializer
        try:
            name = await self.directory.get_tenant_name(tenant_id)
        except UpstreamUnavailable as e:
            logger.warning("Tenant name for %s unavailable, rendering unbranded: %s", tenant_id, e)
            return self.materializer
        return self.materializer.for_organization(name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _attempt(
        self, materializer: PayslipMaterializer, item: PayrollRunItem
    ) -> tuple[bool, str | None]:
        """One delivery attempt, no retry. Returns (accepted, error)."""
        if not item.email:
            return False, "No email address on record"

        try:
            document = materializer.render_artifact(item)
            html_body = materializer.render_email_body(item)
            receipt = await self.notifier.send(
                item.email,
                document,
                email_subject(PayPeriod.of(item.month, item.year)),
                html_body,
            )
        except (ArtifactRenderError, NotificationError) as e:
            return False, str(e)
        except Exception as e:
            # Anything short of a confirmed receipt is a failed attempt
            logger.exception(
                "Unexpected failure sending payslip %s to employee %s",
                item.id,
                item.employee_id,
            )
            return False, str(e) or type(e).__name__

        if not receipt.accepted:
            return False, receipt.message or "Rejected by notification service"
        return True, None

    async def _record(
        self,
        tenant_id: UUID,
        item: PayrollRunItem,
        accepted: bool,
        error: str | None,
        actor_id: str | None,
        audit: bool = False,
    ) -> DistributionOutcome:
        """Persist the attempt's outcome in its own transaction."""
        async with self.session_factory() as session:
            current = await session.scalar(
                select(PayrollRunItem.distribution_status)
                .where(PayrollRunItem.id == item.id)
                .with_for_update()
            )
            status = DistributionStateMachine.next_status(current, accepted)
            await session.execute(
                update(PayrollRunItem)
                .where(PayrollRunItem.id == item.id)
                .values(
                    distribution_status=status.value,
                    distribution_attempts=PayrollRunItem.distribution_attempts + 1,
                    last_distributed_at=utcnow(),
                    last_distribution_error=None if accepted else error,
                )
            )
            if audit:
                session.add(
                    AuditEvent(
                        tenant_id=tenant_id,
                        action="PAYSLIP_SENT" if accepted else "PAYSLIP_SEND_FAILED",
                        description=(
                            f"Payslip for {item.month}/{item.year} "
                            f"{'sent to' if accepted else 'could not be sent to'} "
                            f"{item.employee_name}."
                        ),
                        actor_id=actor_id,
                        target_employee_id=item.employee_id,
                        run_id=item.run_id,
                    )
                )
            await session.commit()

        return DistributionOutcome(
            payslip_id=item.id,
            employee_id=item.employee_id,
            accepted=accepted,
            status=status,
            error=None if accepted else error,
        )

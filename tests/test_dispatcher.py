"""Tests for DistributionDispatcher.

Key invariants:
1. One recipient's failure never blocks or rolls back another's send
2. Downloads never change distribution state
3. A sent payslip is never reported as unsent
"""

from dataclasses import replace
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select

from hr_payroll.models import AuditEvent, DistributionStatus
from hr_payroll.services import PayslipNotFound, RunNotFound, RunRegistry


@pytest_asyncio.fixture
async def run(registry, tenant_id, period):
    return await registry.commit_run(tenant_id, period, ["E1", "E2", "E3"], actor_id="admin-1")


async def load_items(session_factory, run_id) -> dict:
    async with session_factory() as session:
        items = await RunRegistry(session).list_items(run_id)
    return {item.employee_id: item for item in items}


async def load_events(session_factory, action: str) -> list[AuditEvent]:
    async with session_factory() as session:
        result = await session.execute(select(AuditEvent).where(AuditEvent.action == action))
        return list(result.scalars().all())


class TestSendBatch:
    """Run-wide sends."""

    async def test_all_sent(self, dispatcher, notifier, session_factory, run, tenant_id):
        batch = await dispatcher.send_batch(tenant_id, run.id)

        assert (batch.sent, batch.failed) == (3, 0)
        assert batch.failed_employee_ids == []
        assert sorted(m.recipient for m in notifier.sent) == [
            "asha@example.com",
            "meera@example.com",
            "vikram@example.com",
        ]

        items = await load_items(session_factory, run.id)
        assert {i.distribution_status for i in items.values()} == {"SENT"}
        assert {i.distribution_attempts for i in items.values()} == {1}

    async def test_failure_is_isolated(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        notifier.fail_for.add("vikram@example.com")

        batch = await dispatcher.send_batch(tenant_id, run.id)

        assert (batch.sent, batch.failed) == (2, 1)
        assert batch.failed_employee_ids == ["E2"]

        items = await load_items(session_factory, run.id)
        assert items["E1"].distribution_status == "SENT"
        assert items["E3"].distribution_status == "SENT"
        assert items["E2"].distribution_status == "FAILED"
        assert "simulated delivery failure" in items["E2"].last_distribution_error
        assert items["E1"].last_distribution_error is None

    async def test_rejected_receipt_counts_as_failure(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        notifier.reject_for.add("asha@example.com")

        batch = await dispatcher.send_batch(tenant_id, run.id)

        assert batch.failed_employee_ids == ["E1"]
        outcome = next(o for o in batch.outcomes if o.employee_id == "E1")
        assert outcome.status == DistributionStatus.FAILED
        assert outcome.error == "recipient rejected"

    async def test_unexpected_error_is_isolated(
        self, dispatcher, notifier, session_factory, run, tenant_id, monkeypatch
    ):
        send = notifier.send

        async def flaky_send(recipient, document, subject, html_body):
            if recipient == "meera@example.com":
                raise RuntimeError("connection reset")
            return await send(recipient, document, subject, html_body)

        monkeypatch.setattr(notifier, "send", flaky_send)

        batch = await dispatcher.send_batch(tenant_id, run.id)

        assert batch.failed_employee_ids == ["E3"]
        outcome = next(o for o in batch.outcomes if o.employee_id == "E3")
        assert outcome.status == DistributionStatus.FAILED
        assert outcome.error == "connection reset"

        items = await load_items(session_factory, run.id)
        assert items["E1"].distribution_status == "SENT"
        assert items["E3"].distribution_status == "FAILED"
        assert items["E3"].distribution_attempts == 1
        assert items["E3"].last_distribution_error == "connection reset"

    async def test_batch_audit_event(self, dispatcher, notifier, session_factory, run, tenant_id):
        notifier.fail_for.add("vikram@example.com")

        await dispatcher.send_batch(tenant_id, run.id, actor_id="admin-2")

        events = await load_events(session_factory, "PAYSLIP_SENT_ALL")
        assert len(events) == 1
        assert events[0].run_id == run.id
        assert events[0].actor_id == "admin-2"
        assert events[0].description == "Sent payslips for 11/2025: 2 sent, 1 failed."

    async def test_unknown_run(self, dispatcher, run):
        with pytest.raises(RunNotFound):
            await dispatcher.send_batch(uuid4(), run.id)

    async def test_retry_after_failure(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        notifier.fail_for.add("vikram@example.com")
        await dispatcher.send_batch(tenant_id, run.id)
        notifier.fail_for.clear()

        batch = await dispatcher.send_batch(tenant_id, run.id)

        assert batch.failed == 0
        items = await load_items(session_factory, run.id)
        assert items["E2"].distribution_status == "SENT"
        assert items["E2"].distribution_attempts == 2
        assert items["E2"].last_distribution_error is None


class TestSendOne:
    """Single payslip sends."""

    async def test_send_marks_sent(self, dispatcher, notifier, session_factory, run, tenant_id):
        e1 = (await load_items(session_factory, run.id))["E1"]

        outcome = await dispatcher.send_one(tenant_id, e1.id, actor_id="admin-1")

        assert outcome.accepted is True
        assert outcome.status == DistributionStatus.SENT
        assert notifier.sent[0].subject == "Your Salary Slip for November 2025"
        assert notifier.sent[0].filename == "Payslip-2025-11-EMP001.pdf"
        assert "Acme Corp" in notifier.sent[0].html_body

        item = (await load_items(session_factory, run.id))["E1"]
        assert item.distribution_status == "SENT"
        assert item.distribution_attempts == 1
        assert item.last_distributed_at is not None

    async def test_failed_send_marks_failed(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        notifier.fail_for.add("asha@example.com")
        e1 = (await load_items(session_factory, run.id))["E1"]

        outcome = await dispatcher.send_one(tenant_id, e1.id)

        assert outcome.accepted is False
        assert outcome.status == DistributionStatus.FAILED
        item = (await load_items(session_factory, run.id))["E1"]
        assert item.distribution_status == "FAILED"
        assert item.distribution_attempts == 1

    async def test_failed_resend_keeps_sent(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        e1 = (await load_items(session_factory, run.id))["E1"]
        await dispatcher.send_one(tenant_id, e1.id)
        notifier.fail_for.add("asha@example.com")

        outcome = await dispatcher.send_one(tenant_id, e1.id)

        assert outcome.accepted is False
        assert outcome.status == DistributionStatus.SENT
        item = (await load_items(session_factory, run.id))["E1"]
        assert item.distribution_status == "SENT"
        assert item.distribution_attempts == 2
        assert item.last_distribution_error is not None

    async def test_single_send_is_audited(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        items = await load_items(session_factory, run.id)
        notifier.fail_for.add("vikram@example.com")

        await dispatcher.send_one(tenant_id, items["E1"].id, actor_id="admin-1")
        await dispatcher.send_one(tenant_id, items["E2"].id, actor_id="admin-1")

        sent = await load_events(session_factory, "PAYSLIP_SENT")
        failed = await load_events(session_factory, "PAYSLIP_SEND_FAILED")
        assert [e.target_employee_id for e in sent] == ["E1"]
        assert [e.target_employee_id for e in failed] == ["E2"]

    async def test_unexpected_error_marks_failed(
        self, dispatcher, notifier, session_factory, run, tenant_id, monkeypatch
    ):
        async def broken_send(recipient, document, subject, html_body):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(notifier, "send", broken_send)
        e1 = (await load_items(session_factory, run.id))["E1"]

        outcome = await dispatcher.send_one(tenant_id, e1.id, actor_id="admin-1")

        assert outcome.accepted is False
        assert outcome.status == DistributionStatus.FAILED
        assert outcome.error == "connection reset"
        item = (await load_items(session_factory, run.id))["E1"]
        assert item.distribution_status == "FAILED"
        assert item.distribution_attempts == 1
        assert item.last_distribution_error == "connection reset"
        failed = await load_events(session_factory, "PAYSLIP_SEND_FAILED")
        assert [e.target_employee_id for e in failed] == ["E1"]

    async def test_unknown_payslip(self, dispatcher, tenant_id):
        with pytest.raises(PayslipNotFound):
            await dispatcher.send_one(tenant_id, uuid4())

    async def test_other_tenant_payslip(self, dispatcher, session_factory, run):
        e1 = (await load_items(session_factory, run.id))["E1"]

        with pytest.raises(PayslipNotFound):
            await dispatcher.send_one(uuid4(), e1.id)

    async def test_directory_down_sends_unbranded(
        self, dispatcher, notifier, directory, session_factory, run, tenant_id
    ):
        e1 = (await load_items(session_factory, run.id))["E1"]
        directory.available = False

        outcome = await dispatcher.send_one(tenant_id, e1.id)

        assert outcome.accepted is True
        assert "Acme Corp" not in notifier.sent[0].html_body


class TestMissingEmail:
    """Employees without an address on record."""

    async def test_missing_email_fails_without_sending(
        self, dispatcher, notifier, directory, employees, registry, session_factory, tenant_id, period
    ):
        record, profile = employees["E3"]
        directory.add_employee(tenant_id, replace(record, email=None), profile)
        run = await registry.commit_run(tenant_id, period, ["E1", "E3"])

        batch = await dispatcher.send_batch(tenant_id, run.id)

        assert batch.failed_employee_ids == ["E3"]
        assert [m.recipient for m in notifier.sent] == ["asha@example.com"]
        item = (await load_items(session_factory, run.id))["E3"]
        assert item.distribution_status == "FAILED"
        assert item.last_distribution_error == "No email address on record"


class TestDownload:
    """Downloads render without side effects."""

    async def test_download_does_not_change_state(
        self, dispatcher, notifier, session_factory, run, tenant_id
    ):
        e1 = (await load_items(session_factory, run.id))["E1"]

        document = await dispatcher.download(tenant_id, e1.id)

        assert document.content.startswith(b"%PDF")
        assert document.filename == "Payslip-2025-11-EMP001.pdf"
        assert notifier.sent == []
        item = (await load_items(session_factory, run.id))["E1"]
        assert item.distribution_status == "NOT_SENT"
        assert item.distribution_attempts == 0

    async def test_download_is_repeatable(self, dispatcher, session_factory, run, tenant_id):
        e1 = (await load_items(session_factory, run.id))["E1"]

        first = await dispatcher.download(tenant_id, e1.id)
        second = await dispatcher.download(tenant_id, e1.id)

        assert first.content == second.content

    async def test_download_latest(self, dispatcher, run, tenant_id):
        document = await dispatcher.download_latest(tenant_id, "E2")

        assert document.filename == "Payslip-2025-11-EMP002.pdf"

    async def test_download_latest_without_payslip(self, dispatcher, tenant_id):
        with pytest.raises(PayslipNotFound, match="employee E9"):
            await dispatcher.download_latest(tenant_id, "E9")

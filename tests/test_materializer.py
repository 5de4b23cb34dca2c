"""Tests for PayslipMaterializer."""

from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from hr_payroll.calculators import PayPeriod
from hr_payroll.models import PayrollRun, PayrollRunItem
from hr_payroll.services import ArtifactRenderError, PayslipMaterializer
from hr_payroll.services.materializer import email_subject, run_report_filename

PAYSLIP_ID = UUID("6b1f0b52-7f0e-4a43-9f57-3a7c1c2d9a10")
RUN_ID = UUID("1d2c3b4a-0000-4000-8000-000000000001")
TENANT_ID = UUID("0f0e0d0c-0000-4000-8000-000000000002")


def make_item(**overrides) -> PayrollRunItem:
    """Unsaved payslip row for the worked example employee."""
    values = {
        "id": PAYSLIP_ID,
        "run_id": RUN_ID,
        "tenant_id": TENANT_ID,
        "month": 11,
        "year": 2025,
        "employee_id": "E1",
        "employee_code": "EMP001",
        "employee_name": "Asha Rao",
        "designation": "Engineer",
        "email": "asha@example.com",
        "basic": Decimal("30000.00"),
        "hra": Decimal("12000.00"),
        "allowances": Decimal("3000.00"),
        "lwp_days": 2,
        "lwp_deduction": Decimal("2000.00"),
        "gross_salary": Decimal("43000.00"),
        "pf": Decimal("3600.00"),
        "tax": Decimal("2000.00"),
        "total_deductions": Decimal("5600.00"),
        "net_salary": Decimal("37400.00"),
        "calculation_hash": "abc123",
        "distribution_status": "NOT_SENT",
        "distribution_attempts": 0,
    }
    values.update(overrides)
    return PayrollRunItem(**values)


def make_run(items: list[PayrollRunItem], **overrides) -> PayrollRun:
    values = {
        "id": RUN_ID,
        "tenant_id": TENANT_ID,
        "month": 11,
        "year": 2025,
        "status": "PROCESSED",
        "total_employees": len(items),
        "total_gross": sum(i.gross_salary for i in items),
        "total_deductions": sum(i.total_deductions for i in items),
        "total_net": sum(i.net_salary for i in items),
    }
    values.update(overrides)
    return PayrollRun(**values)


class TestRenderArtifact:
    """Single payslip PDFs."""

    def test_produces_pdf(self, materializer):
        document = materializer.render_artifact(make_item())

        assert document.content.startswith(b"%PDF")
        assert document.content_type == "application/pdf"
        assert document.filename == "Payslip-2025-11-EMP001.pdf"

    def test_metadata_identifies_payslip(self, materializer):
        document = materializer.render_artifact(make_item())

        assert document.metadata == {
            "payslip_id": str(PAYSLIP_ID),
            "employee_id": "E1",
            "period": "2025-11",
            "calculation_hash": "abc123",
        }

    def test_same_row_same_bytes(self, materializer):
        first = materializer.render_artifact(make_item())
        second = materializer.render_artifact(make_item())

        assert first.content == second.content

    def test_branding_changes_output(self, materializer):
        plain = materializer.render_artifact(make_item())
        branded = materializer.for_organization("Acme Corp").render_artifact(make_item())

        assert plain.content != branded.content

    def test_zero_net_renders(self, materializer):
        item = make_item(
            tax=Decimal("39400.00"),
            total_deductions=Decimal("43000.00"),
            net_salary=Decimal("0.00"),
        )

        assert materializer.render_artifact(item).content.startswith(b"%PDF")

    def test_inconsistent_row_rejected(self, materializer):
        item = make_item(net_salary=Decimal("40000.00"))

        with pytest.raises(ArtifactRenderError, match="gross - deductions"):
            materializer.render_artifact(item)

    def test_negative_net_rejected(self, materializer):
        item = make_item(
            total_deductions=Decimal("43001.00"),
            net_salary=Decimal("-1.00"),
        )

        with pytest.raises(ArtifactRenderError, match="negative"):
            materializer.render_artifact(item)

    def test_missing_name_rejected(self, materializer):
        with pytest.raises(ArtifactRenderError, match="employee_name"):
            materializer.render_artifact(make_item(employee_name=""))

    def test_invalid_period_rejected(self, materializer):
        with pytest.raises(ArtifactRenderError):
            materializer.render_artifact(make_item(month=13))


class TestRunSummary:
    """Run report PDFs."""

    def test_single_page_report(self, materializer):
        items = [make_item(), make_item(id=uuid4(), employee_id="E2", employee_code="EMP002")]
        run = make_run(items)

        document = materializer.render_run_summary(run, items)

        assert document.content.startswith(b"%PDF")
        assert document.filename == "Payroll-2025-11.pdf"
        assert document.metadata["pages"] == 1
        assert document.metadata["run_id"] == str(RUN_ID)

    def test_paginates_long_runs(self, materializer):
        items = [
            make_item(id=uuid4(), employee_id=f"E{n}", employee_code=f"EMP{n:03d}")
            for n in range(PayslipMaterializer.ROWS_PER_PAGE + 5)
        ]

        document = materializer.render_run_summary(make_run(items), items)

        assert document.metadata["pages"] == 2

    def test_count_mismatch_rejected(self, materializer):
        items = [make_item()]
        run = make_run(items, total_employees=2)

        with pytest.raises(ArtifactRenderError, match="2 employees"):
            materializer.render_run_summary(run, items)

    def test_broken_item_rejected(self, materializer):
        items = [make_item(net_salary=Decimal("1.00"))]

        with pytest.raises(ArtifactRenderError):
            materializer.render_run_summary(make_run(items), items)

    def test_report_is_deterministic(self, materializer):
        items = [make_item()]
        run = make_run(items)

        assert (
            materializer.render_run_summary(run, items).content
            == materializer.render_run_summary(run, items).content
        )

    def test_filename_pads_month(self):
        run = make_run([make_item()], month=3)

        assert run_report_filename(run) == "Payroll-2025-03.pdf"


class TestEmailBody:
    """HTML body of the payslip email."""

    def test_contains_greeting_and_net(self, materializer):
        body = materializer.render_email_body(make_item())

        assert "Dear Asha Rao," in body
        assert "November 2025" in body
        assert "Rs. 37,400.00" in body
        assert "Rs. 2,000.00" in body

    def test_escapes_employee_data(self, materializer):
        body = materializer.render_email_body(make_item(employee_name="<b>Asha</b> & Co"))

        assert "<b>Asha</b>" not in body
        assert "&lt;b&gt;Asha&lt;/b&gt; &amp; Co" in body

    def test_organization_heading(self, materializer):
        body = materializer.for_organization("Acme Corp").render_email_body(make_item())

        assert "<h2>Acme Corp</h2>" in body

    def test_subject(self):
        assert email_subject(PayPeriod.of(11, 2025)) == "Your Salary Slip for November 2025"


class TestMoney:
    def test_currency_symbol(self):
        assert PayslipMaterializer(currency_symbol="$").money(Decimal("1234.5")) == "$ 1,234.50"

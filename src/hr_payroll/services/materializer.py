"""Payslip materializer: PDF payslips, run reports and email bodies."""

from __future__ import annotations

import html
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from io import BytesIO
from typing import Any

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from hr_payroll.calculators.types import PayPeriod
from hr_payroll.models import PayrollRun, PayrollRunItem

PDF_CONTENT_TYPE = "application/pdf"


class ArtifactRenderError(Exception):
    """Raised when a payslip or report cannot be rendered from its data."""

    def __init__(self, subject: str, reason: str):
        self.subject = subject
        self.reason = reason
        super().__init__(f"Cannot render {subject}: {reason}")


@dataclass(frozen=True)
class Document:
    """A rendered, downloadable artifact."""

    filename: str
    content: bytes
    content_type: str = PDF_CONTENT_TYPE
    metadata: dict[str, Any] = field(default_factory=dict)


def payslip_filename(item: PayrollRunItem) -> str:
    return f"Payslip-{item.year}-{item.month}-{item.employee_code}.pdf"


def run_report_filename(run: PayrollRun) -> str:
    return f"Payroll-{run.year:04d}-{run.month:02d}.pdf"


def email_subject(period: PayPeriod) -> str:
    return f"Your Salary Slip for {period.label}"


class PayslipMaterializer:
    """Renders frozen payslip rows into documents.

    Pure function of its input: the same row always produces the same
    bytes. PDFs are written with reportlab's invariant mode so no
    timestamp or random document id ends up in the output.
    """

    def __init__(self, organization_name: str = "", currency_symbol: str = "Rs."):
        self.organization_name = organization_name
        self.currency_symbol = currency_symbol

    def money(self, amount: Decimal) -> str:
        return f"{self.currency_symbol} {amount:,.2f}"

    def for_organization(self, organization_name: str) -> PayslipMaterializer:
        """Copy of this materializer branded for one tenant."""
        return PayslipMaterializer(organization_name, self.currency_symbol)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def check_item(item: PayrollRunItem) -> None:
        """Raise ArtifactRenderError if the row cannot be rendered faithfully."""
        subject = f"payslip {item.id}"
        required = {
            "employee_id": item.employee_id,
            "employee_name": item.employee_name,
            "basic": item.basic,
            "gross_salary": item.gross_salary,
            "total_deductions": item.total_deductions,
            "net_salary": item.net_salary,
        }
        missing = [name for name, value in required.items() if value is None or value == ""]
        if missing:
            raise ArtifactRenderError(subject, f"missing {', '.join(missing)}")
        try:
            PayPeriod.of(item.month, item.year)
        except ValueError as e:
            raise ArtifactRenderError(subject, str(e)) from e
        if item.net_salary < 0:
            raise ArtifactRenderError(subject, "net salary is negative")
        if item.gross_salary - item.total_deductions != item.net_salary:
            raise ArtifactRenderError(subject, "gross - deductions does not equal net")

    # ------------------------------------------------------------------
    # Single payslip
    # ------------------------------------------------------------------

    def render_artifact(self, item: PayrollRunItem) -> Document:
        """Render one payslip as a portrait A4 PDF."""
        self.check_item(item)
        period = PayPeriod.of(item.month, item.year)

        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        pdf.setTitle(f"Payslip {period.label} - {item.employee_name}")
        pdf.setAuthor(self.organization_name or "Payroll")
        width, height = A4

        y = height - 60
        pdf.setFont("Helvetica-Bold", 18)
        pdf.drawCentredString(width / 2, y, self.organization_name or "Payslip")
        y -= 22
        pdf.setFont("Helvetica", 12)
        pdf.drawCentredString(width / 2, y, f"Payslip for the month of {period.label}")
        y -= 36

        pdf.setFont("Helvetica", 10)
        details = [
            ("Employee Name", item.employee_name),
            ("Employee ID", item.employee_code),
            ("Designation", item.designation or "-"),
            ("Loss of Pay Days", str(item.lwp_days)),
        ]
        for label, value in details:
            pdf.drawString(50, y, f"{label}:")
            pdf.drawString(170, y, value)
            y -= 16
        y -= 14

        left, mid, right = 50, width / 2 + 5, width - 50
        pdf.setFillColor(colors.lightgrey)
        pdf.rect(left, y - 4, right - left, 18, stroke=0, fill=1)
        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(left + 5, y, "Earnings")
        pdf.drawString(mid, y, "Deductions")
        y -= 22

        earnings = [
            ("Basic Salary", item.basic),
            ("HRA", item.hra),
            ("Allowances", item.allowances),
        ]
        deductions = [
            ("Provident Fund", item.pf),
            ("Tax", item.tax),
        ]
        if item.lwp_deduction:
            # Gross is already net of loss of pay; show it for reference
            earnings.append(("Less: Loss of Pay", -item.lwp_deduction))

        pdf.setFont("Helvetica", 10)
        for i in range(max(len(earnings), len(deductions))):
            if i < len(earnings):
                label, amount = earnings[i]
                pdf.drawString(left + 5, y, label)
                pdf.drawRightString(mid - 15, y, self.money(amount))
            if i < len(deductions):
                label, amount = deductions[i]
                pdf.drawString(mid, y, label)
                pdf.drawRightString(right - 5, y, self.money(amount))
            y -= 16

        y -= 4
        pdf.line(left, y + 10, right, y + 10)
        pdf.setFont("Helvetica-Bold", 10)
        pdf.drawString(left + 5, y - 4, "Gross Salary")
        pdf.drawRightString(mid - 15, y - 4, self.money(item.gross_salary))
        pdf.drawString(mid, y - 4, "Total Deductions")
        pdf.drawRightString(right - 5, y - 4, self.money(item.total_deductions))
        y -= 44

        pdf.setStrokeColor(colors.black)
        pdf.rect(left, y - 10, right - left, 30, stroke=1, fill=0)
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(left + 10, y, "Net Salary Payable")
        pdf.drawRightString(right - 10, y, self.money(item.net_salary))
        y -= 50

        pdf.setFont("Helvetica-Oblique", 8)
        pdf.drawCentredString(
            width / 2, y, "This is a computer-generated payslip and does not require a signature."
        )
        pdf.showPage()
        pdf.save()

        return Document(
            filename=payslip_filename(item),
            content=buffer.getvalue(),
            metadata={
                "payslip_id": str(item.id),
                "employee_id": item.employee_id,
                "period": str(period),
                "calculation_hash": item.calculation_hash,
            },
        )

    # ------------------------------------------------------------------
    # Run report
    # ------------------------------------------------------------------

    REPORT_COLUMNS: tuple[tuple[str, float, str], ...] = (
        # (header, x offset, alignment)
        ("Emp ID", 30, "left"),
        ("Name", 100, "left"),
        ("Basic", 330, "right"),
        ("HRA", 405, "right"),
        ("Allowances", 480, "right"),
        ("LWP", 530, "right"),
        ("Gross", 610, "right"),
        ("Deductions", 690, "right"),
        ("Net", 770, "right"),
    )
    ROWS_PER_PAGE = 28

    def _report_row(self, item: PayrollRunItem) -> list[str]:
        return [
            item.employee_code,
            item.employee_name[:40],
            f"{item.basic:,.2f}",
            f"{item.hra:,.2f}",
            f"{item.allowances:,.2f}",
            str(item.lwp_days),
            f"{item.gross_salary:,.2f}",
            f"{item.total_deductions:,.2f}",
            f"{item.net_salary:,.2f}",
        ]

    def _draw_row(self, pdf: canvas.Canvas, y: float, cells: Sequence[str]) -> None:
        for (_, x, align), cell in zip(self.REPORT_COLUMNS, cells):
            if align == "right":
                pdf.drawRightString(x, y, cell)
            else:
                pdf.drawString(x, y, cell)

    def render_run_summary(self, run: PayrollRun, items: Sequence[PayrollRunItem]) -> Document:
        """Render a run's payslips as a landscape A4 table with totals."""
        for item in items:
            self.check_item(item)
        if len(items) != run.total_employees:
            raise ArtifactRenderError(
                f"run {run.id}",
                f"run has {run.total_employees} employees but {len(items)} payslips were given",
            )
        period = PayPeriod.of(run.month, run.year)

        buffer = BytesIO()
        pagesize = landscape(A4)
        pdf = canvas.Canvas(buffer, pagesize=pagesize, invariant=1)
        pdf.setTitle(f"Payroll Report {period.label}")
        pdf.setAuthor(self.organization_name or "Payroll")
        width, height = pagesize
        headers = [header for header, _, _ in self.REPORT_COLUMNS]

        pages = [
            items[i : i + self.ROWS_PER_PAGE] for i in range(0, len(items), self.ROWS_PER_PAGE)
        ] or [[]]
        for page_number, page_items in enumerate(pages, start=1):
            y = height - 40
            pdf.setFont("Helvetica-Bold", 16)
            title = f"Payroll Report - {period.label}"
            if self.organization_name:
                title = f"{self.organization_name}: {title}"
            pdf.drawString(30, y, title)
            pdf.setFont("Helvetica", 9)
            pdf.drawRightString(width - 30, y, f"Page {page_number} of {len(pages)}")
            y -= 30

            pdf.setFont("Helvetica-Bold", 9)
            self._draw_row(pdf, y, headers)
            pdf.line(30, y - 4, width - 30, y - 4)
            y -= 18

            pdf.setFont("Helvetica", 9)
            for item in page_items:
                self._draw_row(pdf, y, self._report_row(item))
                y -= 15

            if page_number == len(pages):
                pdf.line(30, y + 10, width - 30, y + 10)
                pdf.setFont("Helvetica-Bold", 9)
                self._draw_row(
                    pdf,
                    y - 4,
                    [
                        "Total",
                        f"{run.total_employees} employees",
                        "",
                        "",
                        "",
                        "",
                        f"{run.total_gross:,.2f}",
                        f"{run.total_deductions:,.2f}",
                        f"{run.total_net:,.2f}",
                    ],
                )
            pdf.showPage()
        pdf.save()

        return Document(
            filename=run_report_filename(run),
            content=buffer.getvalue(),
            metadata={"run_id": str(run.id), "period": str(period), "pages": len(pages)},
        )

    # ------------------------------------------------------------------
    # Email body
    # ------------------------------------------------------------------

    def render_email_body(self, item: PayrollRunItem) -> str:
        """HTML salary slip for the email that carries the PDF."""
        self.check_item(item)
        period = PayPeriod.of(item.month, item.year)
        esc = html.escape

        rows = [
            ("Basic Salary", item.basic),
            ("HRA", item.hra),
            ("Allowances", item.allowances),
            ("Loss of Pay", item.lwp_deduction),
            ("Gross Salary", item.gross_salary),
            ("Provident Fund", item.pf),
            ("Tax", item.tax),
            ("Total Deductions", item.total_deductions),
        ]
        table_rows = "\n".join(
            f'<tr><td style="padding:4px 8px">{esc(label)}</td>'
            f'<td style="padding:4px 8px;text-align:right">{esc(self.money(amount))}</td></tr>'
            for label, amount in rows
        )
        organization = esc(self.organization_name) if self.organization_name else "Payroll"

        return f"""<html>
<body style="font-family:Arial,sans-serif;color:#222">
<h2>{organization}</h2>
<p>Dear {esc(item.employee_name)},</p>
<p>Please find attached your salary slip for {esc(period.label)}.</p>
<table style="border-collapse:collapse;border:1px solid #ccc">
{table_rows}
<tr><th style="padding:4px 8px;text-align:left">Net Salary</th>
<th style="padding:4px 8px;text-align:right">{esc(self.money(item.net_salary))}</th></tr>
</table>
<p>Employee ID: {esc(item.employee_code)}<br>Designation: {esc(item.designation or "-")}</p>
<p>This is an automated message. Please do not reply.</p>
</body>
</html>
"""

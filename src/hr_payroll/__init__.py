"""Payroll run processing and payslip distribution."""

__version__ = "0.1.0"

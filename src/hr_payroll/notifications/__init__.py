"""Notification adapters for payslip delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING

from hr_payroll.notifications.base import NotificationError, Notifier, SendReceipt
from hr_payroll.notifications.smtp import SmtpNotifier
from hr_payroll.notifications.stub import LoggingNotifier

if TYPE_CHECKING:
    from hr_payroll.config import Settings


def build_notifier(settings: Settings) -> Notifier:
    """SMTP when a host is configured, otherwise the logging stub."""
    if settings.smtp_configured:
        return SmtpNotifier.from_settings(settings)
    return LoggingNotifier()


__all__ = [
    "LoggingNotifier",
    "NotificationError",
    "Notifier",
    "SendReceipt",
    "SmtpNotifier",
    "build_notifier",
]

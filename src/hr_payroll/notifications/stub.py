"""Logging notifier used when no mail server is configured."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hr_payroll.notifications.base import NotificationError, SendReceipt

if TYPE_CHECKING:
    from hr_payroll.services.materializer import Document

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    recipient: str
    subject: str
    filename: str
    html_body: str


@dataclass
class LoggingNotifier:
    """Stub notifier: logs each message instead of delivering it.

    ``fail_for`` and ``reject_for`` let tests simulate a recipient whose
    delivery errors out or is refused.
    """

    notifier_name: str = "logging"
    fail_for: set[str] = field(default_factory=set)
    reject_for: set[str] = field(default_factory=set)
    sent: list[SentMessage] = field(default_factory=list)

    async def send(
        self,
        recipient: str,
        document: Document,
        subject: str,
        html_body: str,
    ) -> SendReceipt:
        if recipient in self.fail_for:
            raise NotificationError(recipient, "simulated delivery failure")
        if recipient in self.reject_for:
            return SendReceipt(message_id="", accepted=False, message="recipient rejected")

        self.sent.append(
            SentMessage(
                recipient=recipient,
                subject=subject,
                filename=document.filename,
                html_body=html_body,
            )
        )
        logger.info(
            "Email not delivered (no SMTP configured): to=%s subject=%r attachment=%s",
            recipient,
            subject,
            document.filename,
        )
        return SendReceipt(message_id=f"stub-{uuid.uuid4().hex[:16]}", accepted=True)

"""SMTP notifier."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import TYPE_CHECKING

from hr_payroll.notifications.base import NotificationError, SendReceipt

if TYPE_CHECKING:
    from hr_payroll.config import Settings
    from hr_payroll.services.materializer import Document

logger = logging.getLogger(__name__)


class SmtpNotifier:
    """Sends payslips through an SMTP relay.

    smtplib is blocking, so each delivery runs in a worker thread; one
    connection per message keeps a bad recipient from poisoning a batch.
    """

    notifier_name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        sender: str | None = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender or username or f"no-reply@{host}"
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> SmtpNotifier:
        if not settings.smtp_host:
            raise ValueError("SMTP_HOST is not configured")
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            sender=settings.smtp_sender,
        )

    def build_message(
        self,
        recipient: str,
        document: Document,
        subject: str,
        html_body: str,
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.host)
        message.set_content("Your payslip is attached.")
        message.add_alternative(html_body, subtype="html")
        maintype, _, subtype = document.content_type.partition("/")
        message.add_attachment(
            document.content,
            maintype=maintype,
            subtype=subtype,
            filename=document.filename,
        )
        return message

    def _deliver(self, message: EmailMessage) -> dict[str, tuple[int, bytes]]:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            return smtp.send_message(message)

    async def send(
        self,
        recipient: str,
        document: Document,
        subject: str,
        html_body: str,
    ) -> SendReceipt:
        message = self.build_message(recipient, document, subject, html_body)
        try:
            refused = await asyncio.to_thread(self._deliver, message)
        except smtplib.SMTPRecipientsRefused as e:
            return SendReceipt(message_id="", accepted=False, message=str(e.recipients))
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(recipient, str(e) or type(e).__name__) from e

        if refused:
            return SendReceipt(message_id="", accepted=False, message=str(refused))
        return SendReceipt(message_id=message["Message-ID"], accepted=True)

"""Protocol and types for the notification collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from hr_payroll.services.materializer import Document


@dataclass(frozen=True)
class SendReceipt:
    """Acknowledgement from the notification service."""

    message_id: str
    accepted: bool
    message: str = ""


class NotificationError(Exception):
    """Raised when a message cannot be handed to the notification service."""

    def __init__(self, recipient: str | None, reason: str):
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Could not send to {recipient or '<no address>'}: {reason}")


class Notifier(Protocol):
    """Protocol for notification adapters (SMTP, provider APIs, stubs)."""

    notifier_name: str

    async def send(
        self,
        recipient: str,
        document: Document,
        subject: str,
        html_body: str,
    ) -> SendReceipt:
        """Deliver ``document`` as an attachment of an HTML message.

        Returns:
            SendReceipt; ``accepted`` is False when the service refused the
            message without raising.

        Raises:
            NotificationError: If the service could not be reached.
        """
        ...

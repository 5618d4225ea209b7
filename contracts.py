"""Collaborator contracts consumed by the reminder engine.

The engine only talks to storage and to the mail transport through these
narrow interfaces. ``crud.SqlReminderStore`` and the transports in ``mailer``
are the production implementations; tests substitute in-memory fakes.
"""

from typing import List, Optional, Protocol

from schemas import NotificationAuditEntry, ReminderRecord, SendResult, UserRecord


class ReminderStore(Protocol):
    """Storage collaborator."""

    def list_active_reminders(self) -> List[ReminderRecord]:
        ...

    def get_user(self, owner_id: str) -> Optional[UserRecord]:
        ...

    def append_notification_audit(self, entry: NotificationAuditEntry) -> None:
        ...


class MailTransport(Protocol):
    """Outbound mail collaborator.

    ``send`` reports a rejected recipient either as ``SendResult(ok=False)``
    or by raising ``SendFailure``.
    """

    name: str

    def is_configured(self) -> bool:
        ...

    async def send(self, address: str, subject: str, html_body: str) -> SendResult:
        ...

    async def verify(self) -> bool:
        ...

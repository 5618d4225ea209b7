"""Notification dispatch for due reminders.

Turns one due reminder into a rendered email, sends it to every recipient of
the owning user and returns one audit entry per attempt:
- sent: the transport accepted the message
- failed: the transport rejected or raised; the next recipient is still tried
- simulated: the transport has no credentials, nothing is sent, content is logged
"""

from datetime import date, datetime, timezone
from html import escape
from typing import List, Optional

from config import settings
from contracts import MailTransport
from evaluator import FiringDecision
from exceptions import SendFailure
from logger_config import setup_logger
from schemas import (
    NotificationAuditEntry,
    NotificationStatus,
    ReminderKind,
    ReminderRecord,
    RenderedNotification,
    UserRecord,
)

logger = setup_logger(__name__, 'dispatch.log')


def recipients_for(user: UserRecord) -> List[str]:
    """Notification addresses if any are set, else the primary email, else nothing."""
    overrides = [address.strip() for address in (user.notification_emails or []) if address and address.strip()]
    if overrides:
        # one send and one audit entry per address
        return list(dict.fromkeys(overrides))
    if user.email:
        return [user.email]
    return []


def _days_phrase(days: int) -> str:
    return "in 1 day" if days == 1 else f"in {days} days"


def render_subject(reminder: ReminderRecord, decision: FiringDecision) -> str:
    person_name = reminder.person.full_name if reminder.person else "Someone"
    advance = decision == FiringDecision.ADVANCE_NOTICE
    when = _days_phrase(reminder.advance_notice_days) if advance else "is today"

    if reminder.kind == ReminderKind.BIRTHDAY:
        return f"🎂 {person_name}'s Birthday {when}!"
    if reminder.kind == ReminderKind.ANNIVERSARY:
        return f"💍 {reminder.title} {when}!"
    return f"🔔 Reminder: {reminder.title} {when}"


def _person_section(reminder: ReminderRecord) -> str:
    person = reminder.person
    if person is None:
        return ""

    name = escape(person.full_name)
    parts = []
    if reminder.kind != ReminderKind.BIRTHDAY:
        parts.append(f"<p><em>Related to: {name}</em></p>")
    if person.relationship:
        parts.append(f"<p><em>Relationship: {escape(person.relationship)}</em></p>")
    if person.notes:
        parts.append(f"<p><strong>Notes about {name}:</strong><br>{escape(person.notes)}</p>")
    return "\n".join(parts)


def render_body(reminder: ReminderRecord, decision: FiringDecision, today: date) -> str:
    """HTML body. Ages and anniversary years are counted against ``today``'s year."""
    advance = decision == FiringDecision.ADVANCE_NOTICE
    when = _days_phrase(reminder.advance_notice_days) if advance else "today"
    person_name = escape(reminder.person.full_name) if reminder.person else "Someone"

    if reminder.kind == ReminderKind.BIRTHDAY:
        age_text = ""
        if reminder.person and reminder.person.birth_year:
            age_text = f" (turning {today.year - reminder.person.birth_year})"
        content = (
            "<h2>🎂 Birthday Reminder</h2>\n"
            f"<p><strong>{person_name}'s birthday is {when}{age_text}!</strong></p>"
        )
    elif reminder.kind == ReminderKind.ANNIVERSARY:
        years_text = ""
        if reminder.anniversary_year:
            years_text = f" ({today.year - reminder.anniversary_year} years)"
        content = (
            "<h2>💍 Anniversary Reminder</h2>\n"
            f"<p><strong>{escape(reminder.title)} is {when}{years_text}!</strong></p>"
        )
    else:
        content = (
            "<h2>🔔 Reminder</h2>\n"
            f"<p><strong>{escape(reminder.title)}</strong> is {when}.</p>"
        )

    if reminder.description:
        content += f"\n<p>{escape(reminder.description)}</p>"

    person_section = _person_section(reminder)
    if person_section:
        content += "\n" + person_section

    return (
        '<html>\n'
        '<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">\n'
        '<div style="max-width: 600px; margin: 0 auto; padding: 20px;">\n'
        '<h1 style="color: #6366f1; margin: 0;">Memory Keeper</h1>\n'
        '<p style="margin: 5px 0 20px 0; color: #666;">Nurturing your relationships</p>\n'
        f'{content}\n'
        '<p style="margin-top: 30px; color: #666; font-size: 14px;">\n'
        'This is an automated reminder from your Memory Keeper app.<br>\n'
        f'<a href="{escape(settings.APP_URL)}" style="color: #6366f1;">View in Memory Keeper</a>\n'
        '</p>\n'
        '</div>\n'
        '</body>\n'
        '</html>\n'
    )


def render(reminder: ReminderRecord, decision: FiringDecision, user: UserRecord, today: date) -> RenderedNotification:
    """Render subject and body for one firing. Deterministic for the same inputs."""
    return RenderedNotification(
        subject=render_subject(reminder, decision),
        body=render_body(reminder, decision, today),
    )


async def dispatch(
    reminder: ReminderRecord,
    decision: FiringDecision,
    user: UserRecord,
    transport: MailTransport,
    today: date,
    now: Optional[datetime] = None,
) -> List[NotificationAuditEntry]:
    """Send one due reminder to every recipient of its owner.

    Args:
        reminder: The due reminder
        decision: ON_DATE or ADVANCE_NOTICE
        user: Owning user
        transport: Mail transport
        today: Day being processed
        now: Audit timestamp (default: current UTC time)

    Returns:
        List[NotificationAuditEntry]: one entry per recipient, empty when the
        user has no address. The caller persists them.
    """
    if decision == FiringDecision.NONE:
        return []

    recipients = recipients_for(user)
    if not recipients:
        logger.info(f"No notification emails configured for user {user.id}, skipping reminder {reminder.id}")
        return []

    rendered = render(reminder, decision, user, today)
    sent_at = now or datetime.now(timezone.utc)

    def audit(address: str, status: NotificationStatus, error: Optional[str] = None) -> NotificationAuditEntry:
        return NotificationAuditEntry(
            reminder_id=reminder.id,
            owner_id=user.id,
            recipient_address=address,
            rendered_subject=rendered.subject,
            rendered_body=rendered.body,
            sent_at=sent_at,
            status=status,
            error=error,
        )

    if not transport.is_configured():
        logger.info("=" * 60)
        logger.info(f"EMAIL SIMULATED - {transport.name} transport not configured")
        logger.info(f"To: {', '.join(recipients)}")
        logger.info(f"Subject: {rendered.subject}")
        logger.info(f"Body:\n{rendered.body}")
        logger.info("=" * 60)
        return [audit(address, NotificationStatus.SIMULATED) for address in recipients]

    entries = []
    for address in recipients:
        try:
            result = await transport.send(address, rendered.subject, rendered.body)
        except SendFailure as e:
            logger.error(f"Send to {address} for reminder {reminder.id} failed: {e.reason}")
            entries.append(audit(address, NotificationStatus.FAILED, e.reason))
            continue
        except Exception as e:
            logger.error(f"Send to {address} for reminder {reminder.id} raised: {str(e)}")
            entries.append(audit(address, NotificationStatus.FAILED, str(e) or type(e).__name__))
            continue

        if result.ok:
            logger.info(f"Sent reminder {reminder.id} ('{reminder.title}') to {address}")
            entries.append(audit(address, NotificationStatus.SENT))
        else:
            logger.error(f"Send to {address} for reminder {reminder.id} failed: {result.error}")
            entries.append(audit(address, NotificationStatus.FAILED, result.error))

    return entries

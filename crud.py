"""Storage operations used by the reminder engine.

This module is the engine's only door into the database: it reads active
reminders and users, and appends notification audit rows.
IMPORTANT: reminder_date is handed over as the stored YYYY-MM-DD text, untouched.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from typing import List, Optional

from database import EmailNotification, Reminder, User, SessionLocal
from exceptions import StorageUnavailable
from logger_config import setup_logger
from schemas import NotificationAuditEntry, NotificationResponse, PersonRecord, ReminderRecord, UserRecord

logger = setup_logger(__name__, 'crud.log')


def _to_reminder_record(reminder: Reminder) -> ReminderRecord:
    person = None
    if reminder.person is not None:
        person = PersonRecord.model_validate(reminder.person)

    return ReminderRecord(
        id=reminder.id,
        owner_id=reminder.user_id,
        subject_person_id=reminder.person_id,
        kind=reminder.type,
        title=reminder.title,
        description=reminder.description,
        anchor_date=reminder.reminder_date,
        anniversary_year=reminder.anniversary_year,
        advance_notice_days=reminder.advance_days,
        is_recurring=bool(reminder.is_recurring),
        is_active=bool(reminder.is_active),
        person=person,
    )


def list_active_reminders(db: Session) -> List[ReminderRecord]:
    """Get every active reminder of every user.

    Args:
        db: Database session

    Returns:
        List[ReminderRecord]: active reminders with their person attached
    """
    rows = db.query(Reminder).filter(
        Reminder.is_active.is_(True)
    ).order_by(Reminder.reminder_date, Reminder.id).all()
    return [_to_reminder_record(row) for row in rows]


def get_user(db: Session, user_id: str) -> Optional[UserRecord]:
    """Get a user by ID.

    Args:
        db: Database session
        user_id: User ID

    Returns:
        Optional[UserRecord]: User if found, None otherwise
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None
    return UserRecord.model_validate(user)


def append_notification_audit(db: Session, entry: NotificationAuditEntry) -> EmailNotification:
    """Insert one audit row for a notification attempt.

    Args:
        db: Database session
        entry: Audit entry produced by the dispatcher

    Returns:
        EmailNotification: Created row

    Raises:
        SQLAlchemyError: On database errors
    """
    reminder_id = entry.reminder_id
    if isinstance(reminder_id, str) and reminder_id.isdigit():
        reminder_id = int(reminder_id)

    row = EmailNotification(
        user_id=entry.owner_id,
        reminder_id=reminder_id,
        email_address=entry.recipient_address,
        subject=entry.rendered_subject,
        body=entry.rendered_body,
        sent_at=entry.sent_at,
        status=entry.status.value,
        error=entry.error,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_notification_audits(db: Session, user_id: str, limit: int = 50) -> List[EmailNotification]:
    """Get the notification history of a user, newest first.

    Args:
        db: Database session
        user_id: User ID
        limit: Maximum number of results (default: 50)

    Returns:
        List[EmailNotification]: audit rows
    """
    return db.query(EmailNotification).filter(
        EmailNotification.user_id == user_id
    ).order_by(EmailNotification.sent_at.desc(), EmailNotification.id.desc()).limit(limit).all()


class SqlReminderStore:
    """ReminderStore backed by SQLAlchemy. Each call uses its own session."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def list_active_reminders(self) -> List[ReminderRecord]:
        db = self.session_factory()
        try:
            return list_active_reminders(db)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load active reminders: {str(e)}")
            raise StorageUnavailable(f"Failed to load active reminders: {str(e)}") from e
        finally:
            db.close()

    def get_user(self, owner_id: str) -> Optional[UserRecord]:
        db = self.session_factory()
        try:
            return get_user(db, owner_id)
        finally:
            db.close()

    def append_notification_audit(self, entry: NotificationAuditEntry) -> None:
        db = self.session_factory()
        try:
            append_notification_audit(db, entry)
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def list_notification_audits(self, owner_id: str, limit: int = 50) -> List[NotificationResponse]:
        db = self.session_factory()
        try:
            return [
                NotificationResponse(
                    id=row.id,
                    reminder_id=row.reminder_id,
                    owner_id=row.user_id,
                    recipient_address=row.email_address,
                    rendered_subject=row.subject,
                    status=row.status,
                    error=row.error,
                    sent_at=row.sent_at,
                )
                for row in list_notification_audits(db, owner_id, limit)
            ]
        finally:
            db.close()

"""Pydantic schemas for the reminder engine.

These are the shapes that cross the boundary between the engine and its
collaborators: reminder/user records read from storage, audit entries written
back, and the tick report handed to the operator.
IMPORTANT: anchor_date stays a YYYY-MM-DD string here; only date_rules parses it.
"""

import enum
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class ReminderKind(str, enum.Enum):
    """Kinds of reminders"""
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"
    CUSTOM = "custom"


class NotificationStatus(str, enum.Enum):
    """Outcome of one notification attempt"""
    SENT = "sent"
    FAILED = "failed"
    SIMULATED = "simulated"


class TickStatus(str, enum.Enum):
    """Outcome of one scheduler tick"""
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class PersonRecord(BaseModel):
    """The person a reminder concerns."""

    id: int
    full_name: str
    relationship: str = ""
    birth_year: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ReminderRecord(BaseModel):
    """A reminder as read from storage. The engine never mutates it."""

    id: Union[int, str] = Field(..., description="Opaque reminder ID")
    owner_id: str = Field(..., description="ID of the owning user")
    subject_person_id: Optional[int] = Field(None, description="Person the reminder concerns")
    kind: ReminderKind = ReminderKind.CUSTOM
    title: str
    description: Optional[str] = None

    # Plain calendar date text, never an instant
    anchor_date: str = Field(..., description="Anchor date (YYYY-MM-DD)", examples=["1990-03-10"])

    anniversary_year: Optional[int] = Field(None, description="Year the anniversary started")
    advance_notice_days: int = Field(0, ge=0, description="Days of advance notice, 0 for none")
    is_recurring: bool = False
    is_active: bool = True
    person: Optional[PersonRecord] = None

    @field_validator('anchor_date', mode='before')
    @classmethod
    def _date_to_text(cls, value):
        # A DATE column hands back a date; it carries no time, so isoformat is exact
        if isinstance(value, date) and not isinstance(value, datetime):
            return value.isoformat()
        return value

    @field_validator('advance_notice_days', mode='before')
    @classmethod
    def _null_advance_days(cls, value):
        return 0 if value is None else value

    class Config:
        from_attributes = True


class UserRecord(BaseModel):
    """The owner of a set of reminders."""

    id: str
    email: Optional[str] = None
    notification_emails: List[str] = Field(default_factory=list)

    @field_validator('notification_emails', mode='before')
    @classmethod
    def _null_emails(cls, value):
        return [] if value is None else value

    class Config:
        from_attributes = True


class RenderedNotification(BaseModel):
    """Subject and HTML body of one notification."""

    subject: str
    body: str


class SendResult(BaseModel):
    """What a mail transport reports for one recipient."""

    ok: bool
    error: Optional[str] = None


class NotificationAuditEntry(BaseModel):
    """Immutable record of one notification attempt and its outcome."""

    reminder_id: Union[int, str]
    owner_id: str
    recipient_address: str
    rendered_subject: str
    rendered_body: str
    sent_at: datetime
    status: NotificationStatus
    error: Optional[str] = None

    class Config:
        frozen = True
        from_attributes = True


class TickIssue(BaseModel):
    """A reminder that was skipped or failed during a tick, with the reason."""

    reminder_id: Union[int, str]
    reason: str


class TickReport(BaseModel):
    """Summary of one scheduler tick."""

    tick_date: date
    status: TickStatus = TickStatus.COMPLETED
    started_at: datetime
    finished_at: Optional[datetime] = None
    reminders_examined: int = 0
    fired: Dict[str, int] = Field(default_factory=lambda: {"on_date": 0, "advance_notice": 0})
    recipients_notified: int = 0
    skipped: List[TickIssue] = Field(default_factory=list)
    failures: List[TickIssue] = Field(default_factory=list)
    audit_entries: List[NotificationAuditEntry] = Field(default_factory=list)
    error: Optional[str] = None


class NotificationResponse(BaseModel):
    """Schema for notification history responses."""

    id: int = Field(..., description="Audit row ID")
    reminder_id: Optional[int] = Field(None, description="Reminder that fired")
    owner_id: str = Field(..., description="Owning user")
    recipient_address: str
    rendered_subject: str
    status: NotificationStatus
    error: Optional[str] = None
    sent_at: datetime

    class Config:
        from_attributes = True


class SchedulerStatusResponse(BaseModel):
    """Schema for the scheduler status endpoint."""

    state: str
    last_tick_date: Optional[date] = None
    last_report: Optional[TickReport] = None


class TransportCheckResponse(BaseModel):
    """Schema for the transport check endpoint."""

    transport: str
    configured: bool
    can_send: bool
    message: str

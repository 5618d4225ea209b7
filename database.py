"""Database module for the reminder engine.

This module defines SQLAlchemy models and database session management.
The tables are owned by the CRUD layer; the engine reads users, people and
reminders and only ever inserts into email_notifications.
IMPORTANT: reminder_date is stored as YYYY-MM-DD text, NOT a timestamp.
"""

from sqlalchemy import (
    create_engine, Column, String, Integer, Boolean, Text, DateTime, JSON, ForeignKey, Index
)
from sqlalchemy.orm import declarative_base, relationship as orm_relationship, sessionmaker
from sqlalchemy.pool import StaticPool
from datetime import datetime, timezone

from config import settings

# SQLAlchemy Base
Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """User model - the owner of people, memories and reminders."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, doc="User ID from the auth provider")
    email = Column(String, unique=True, nullable=True, doc="Primary email address")
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    notification_emails = Column(JSON, nullable=True, doc="Override addresses for reminder emails")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class Person(Base):
    """Person model - someone in the user's life."""

    __tablename__ = "people"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(Text, nullable=False)
    relationship = Column(Text, nullable=False, default="")
    birth_date = Column(String(10), nullable=True, doc="Birth date (YYYY-MM-DD)")
    birth_year = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<Person(id={self.id}, user={self.user_id}, name={self.full_name})>"


class Reminder(Base):
    """Reminder model - birthday, anniversary and custom reminders.

    CRITICAL: reminder_date is a plain calendar date string, never an instant.
    """

    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(Integer, ForeignKey("people.id", ondelete="CASCADE"), nullable=True)
    type = Column(String, nullable=False, default="custom", doc="birthday, anniversary or custom")
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)

    # CRITICAL: YYYY-MM-DD text, NOT a timestamp!
    reminder_date = Column(String(10), nullable=False, doc="Anchor date (YYYY-MM-DD)")

    anniversary_year = Column(Integer, nullable=True, doc="Year of the anniversary (e.g. wedding year)")
    advance_days = Column(Integer, default=0)
    is_recurring = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    person = orm_relationship(Person, lazy="joined")

    __table_args__ = (
        Index('idx_reminders_user_active', 'user_id', 'is_active'),
    )

    def __repr__(self):
        return (
            f"<Reminder(id={self.id}, user={self.user_id}, "
            f"title={self.title}, date={self.reminder_date}, type={self.type})>"
        )


class EmailNotification(Base):
    """Audit row for one notification attempt. Insert-only."""

    __tablename__ = "email_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_id = Column(Integer, ForeignKey("reminders.id", ondelete="CASCADE"), nullable=True)
    email_address = Column(Text, nullable=False)
    subject = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    status = Column(String, nullable=False, default="sent", doc="sent, failed or simulated")
    error = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_notifications_user_sent', 'user_id', 'sent_at'),
    )

    def __repr__(self):
        return (
            f"<EmailNotification(id={self.id}, reminder={self.reminder_id}, "
            f"to={self.email_address}, status={self.status})>"
        )


def make_engine(url: str):
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False
        )
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if "sqlite" in url else {},
        echo=False  # Set to True for SQL debugging
    )


# Database Engine Setup
engine = make_engine(settings.DATABASE_URL)

# Session Factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Create all tables
Base.metadata.create_all(bind=engine)

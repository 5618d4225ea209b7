"""Shared fixtures for the reminder engine tests."""

import os
import tempfile

# Must be set before config/database are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="memory-keeper-logs-"))

import asyncio

import pytest
from sqlalchemy.orm import sessionmaker

from database import Base, make_engine
from crud import SqlReminderStore
from schemas import ReminderRecord, SendResult, UserRecord


class FakeTransport:
    """Records send calls; addresses in ``fail`` are rejected, in ``explode`` raise."""

    name = "fake"

    def __init__(self, configured=True, fail=(), explode=(), gate=None):
        self.configured = configured
        self.fail = set(fail)
        self.explode = set(explode)
        self.gate = gate
        self.calls = []

    def is_configured(self):
        return self.configured

    async def send(self, address, subject, html_body):
        self.calls.append((address, subject, html_body))
        if self.gate is not None:
            await self.gate.wait()
        if address in self.explode:
            raise ConnectionError(f"connection to {address} dropped")
        if address in self.fail:
            return SendResult(ok=False, error="550 mailbox unavailable")
        return SendResult(ok=True)

    async def verify(self):
        return self.configured


class InMemoryStore:
    """ReminderStore over plain lists."""

    def __init__(self, reminders=(), users=(), broken=False):
        self.reminders = list(reminders)
        self.users = {user.id: user for user in users}
        self.audits = []
        self.broken = broken

    def list_active_reminders(self):
        if self.broken:
            raise ConnectionError("database is unreachable")
        return [reminder for reminder in self.reminders if reminder.is_active]

    def get_user(self, owner_id):
        return self.users.get(owner_id)

    def append_notification_audit(self, entry):
        self.audits.append(entry)


@pytest.fixture
def make_reminder():
    counter = {"next": 1}

    def factory(**overrides):
        data = {
            "id": counter["next"],
            "owner_id": "user-1",
            "kind": "custom",
            "title": "Call the plumber",
            "anchor_date": "2025-07-13",
            "advance_notice_days": 0,
            "is_recurring": False,
            "is_active": True,
        }
        counter["next"] += 1
        data.update(overrides)
        return ReminderRecord(**data)

    return factory


@pytest.fixture
def make_user():
    def factory(**overrides):
        data = {"id": "user-1", "email": "owner@example.com", "notification_emails": []}
        data.update(overrides)
        return UserRecord(**data)

    return factory


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlReminderStore(session_factory)


@pytest.fixture
def run():
    """Run a coroutine to completion."""
    return asyncio.run

"""Tests for notification rendering and dispatch."""

from datetime import date, datetime, timezone

from conftest import FakeTransport
from dispatcher import dispatch, recipients_for, render
from evaluator import FiringDecision
from exceptions import SendFailure
from schemas import NotificationStatus, PersonRecord

TODAY = date(2025, 3, 10)


def _person(**overrides):
    data = {"id": 7, "full_name": "Ada Lovelace", "relationship": "Friend", "birth_year": 1990, "notes": None}
    data.update(overrides)
    return PersonRecord(**data)


class TestRecipientsFor:

    def test_notification_emails_take_precedence(self, make_user):
        user = make_user(notification_emails=["a@example.com", "b@example.com"])
        assert recipients_for(user) == ["a@example.com", "b@example.com"]

    def test_falls_back_to_primary_email(self, make_user):
        assert recipients_for(make_user(notification_emails=[])) == ["owner@example.com"]

    def test_blank_overrides_are_ignored(self, make_user):
        assert recipients_for(make_user(notification_emails=["", "  "])) == ["owner@example.com"]

    def test_duplicate_addresses_are_kept_once_in_order(self, make_user):
        user = make_user(notification_emails=["b@example.com", "a@example.com", " b@example.com ", "a@example.com"])
        assert recipients_for(user) == ["b@example.com", "a@example.com"]

    def test_no_address_at_all(self, make_user):
        assert recipients_for(make_user(email=None, notification_emails=None)) == []


class TestRender:

    def test_birthday_on_date(self, make_reminder, make_user):
        reminder = make_reminder(kind="birthday", title="Ada's birthday", person=_person())
        rendered = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        assert rendered.subject == "🎂 Ada Lovelace's Birthday is today!"
        assert "Ada Lovelace's birthday is today (turning 35)!" in rendered.body
        assert "Relationship: Friend" in rendered.body

    def test_birthday_advance_notice_has_day_count(self, make_reminder, make_user):
        reminder = make_reminder(kind="birthday", advance_notice_days=3, person=_person())
        rendered = render(reminder, FiringDecision.ADVANCE_NOTICE, make_user(), TODAY)
        assert rendered.subject == "🎂 Ada Lovelace's Birthday in 3 days!"
        assert "birthday is in 3 days (turning 35)!" in rendered.body

    def test_single_day_advance_notice(self, make_reminder, make_user):
        reminder = make_reminder(advance_notice_days=1, title="Dentist")
        rendered = render(reminder, FiringDecision.ADVANCE_NOTICE, make_user(), TODAY)
        assert rendered.subject == "🔔 Reminder: Dentist in 1 day"

    def test_birthday_without_person_or_year(self, make_reminder, make_user):
        reminder = make_reminder(kind="birthday")
        rendered = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        assert rendered.subject == "🎂 Someone's Birthday is today!"
        assert "turning" not in rendered.body

    def test_anniversary_counts_years(self, make_reminder, make_user):
        reminder = make_reminder(kind="anniversary", title="Wedding anniversary", anniversary_year=2015)
        rendered = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        assert rendered.subject == "💍 Wedding anniversary is today!"
        assert "(10 years)" in rendered.body

    def test_custom_with_person_notes_and_description(self, make_reminder, make_user):
        reminder = make_reminder(
            title="Return the book",
            description="The blue one",
            person=_person(notes="Loves chess"),
        )
        rendered = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        assert rendered.subject == "🔔 Reminder: Return the book is today"
        assert "The blue one" in rendered.body
        assert "Related to: Ada Lovelace" in rendered.body
        assert "Loves chess" in rendered.body

    def test_user_text_is_escaped(self, make_reminder, make_user):
        reminder = make_reminder(title="<script>alert(1)</script>")
        rendered = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        assert "<script>" not in rendered.body
        assert "&lt;script&gt;" in rendered.body

    def test_render_is_deterministic(self, make_reminder, make_user):
        reminder = make_reminder(kind="birthday", person=_person())
        first = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        second = render(reminder, FiringDecision.ON_DATE, make_user(), TODAY)
        assert first == second


class TestDispatch:

    def test_failure_does_not_stop_other_recipients(self, make_reminder, make_user, run):
        user = make_user(notification_emails=["a@example.com", "b@example.com"])
        transport = FakeTransport(fail={"a@example.com"})

        entries = run(dispatch(make_reminder(), FiringDecision.ON_DATE, user, transport, TODAY))

        assert [call[0] for call in transport.calls] == ["a@example.com", "b@example.com"]
        assert [(e.recipient_address, e.status) for e in entries] == [
            ("a@example.com", NotificationStatus.FAILED),
            ("b@example.com", NotificationStatus.SENT),
        ]
        assert entries[0].error == "550 mailbox unavailable"

    def test_repeated_address_is_sent_and_audited_once(self, make_reminder, make_user, run):
        user = make_user(notification_emails=["a@example.com", "a@example.com"])
        transport = FakeTransport()

        entries = run(dispatch(make_reminder(), FiringDecision.ON_DATE, user, transport, TODAY))

        assert [call[0] for call in transport.calls] == ["a@example.com"]
        assert [(e.recipient_address, e.status) for e in entries] == [("a@example.com", NotificationStatus.SENT)]

    def test_raising_transport_is_recorded_as_failed(self, make_reminder, make_user, run):
        user = make_user(notification_emails=["a@example.com", "b@example.com"])
        transport = FakeTransport(explode={"a@example.com"})

        entries = run(dispatch(make_reminder(), FiringDecision.ON_DATE, user, transport, TODAY))

        assert [e.status for e in entries] == [NotificationStatus.FAILED, NotificationStatus.SENT]
        assert "connection to a@example.com dropped" in entries[0].error

    def test_send_failure_reason_is_kept(self, make_reminder, make_user, run):
        class BouncingTransport(FakeTransport):
            async def send(self, address, subject, html_body):
                self.calls.append((address, subject, html_body))
                raise SendFailure(address, "quota exceeded")

        transport = BouncingTransport()
        entries = run(dispatch(make_reminder(), FiringDecision.ON_DATE, make_user(), transport, TODAY))

        assert len(transport.calls) == 1
        assert entries[0].status == NotificationStatus.FAILED
        assert entries[0].error == "quota exceeded"

    def test_unconfigured_transport_simulates_every_recipient(self, make_reminder, make_user, run):
        user = make_user(notification_emails=["a@example.com", "b@example.com", "c@example.com"])
        transport = FakeTransport(configured=False)

        entries = run(dispatch(make_reminder(), FiringDecision.ON_DATE, user, transport, TODAY))

        assert transport.calls == []
        assert len(entries) == 3
        assert all(e.status == NotificationStatus.SIMULATED for e in entries)

    def test_no_recipients_is_a_no_op(self, make_reminder, make_user, run):
        transport = FakeTransport()
        user = make_user(email=None)

        entries = run(dispatch(make_reminder(), FiringDecision.ON_DATE, user, transport, TODAY))

        assert entries == []
        assert transport.calls == []

    def test_audit_entries_carry_rendered_content(self, make_reminder, make_user, run):
        reminder = make_reminder(id=42, owner_id="user-9", title="Dentist")
        user = make_user(id="user-9")
        sent_at = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

        entries = run(dispatch(reminder, FiringDecision.ON_DATE, user, FakeTransport(), TODAY, now=sent_at))

        entry = entries[0]
        assert entry.reminder_id == 42
        assert entry.owner_id == "user-9"
        assert entry.recipient_address == "owner@example.com"
        assert entry.rendered_subject == "🔔 Reminder: Dentist is today"
        assert "Dentist" in entry.rendered_body
        assert entry.sent_at == sent_at

    def test_none_decision_sends_nothing(self, make_reminder, make_user, run):
        transport = FakeTransport()
        assert run(dispatch(make_reminder(), FiringDecision.NONE, make_user(), transport, TODAY)) == []
        assert transport.calls == []

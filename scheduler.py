"""Daily reminder scheduler.

Once per calendar day, at a configured local time, the scheduler:
- loads every active reminder from storage
- classifies each one for today (on-date, advance notice, or nothing)
- dispatches due reminders to their owner's recipients
- appends one audit row per send attempt

Ticks never overlap: a tick requested while another is running is skipped.
The same ``tick`` method serves the daily loop and the manual admin trigger.
A failed send is not retried.
"""

import asyncio
import enum
import signal
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

import dispatcher
from config import settings
from contracts import MailTransport, ReminderStore
from date_rules import current_local_date
from evaluator import FiringDecision, evaluate
from exceptions import InvalidDateFormat, UserNotFound
from logger_config import setup_logger
from schemas import (
    NotificationAuditEntry,
    NotificationStatus,
    ReminderRecord,
    TickIssue,
    TickReport,
    TickStatus,
    UserRecord,
)

logger = setup_logger(__name__, 'scheduler.log')


class SchedulerState(str, enum.Enum):
    """Scheduler states"""
    IDLE = "idle"
    TICKING = "ticking"


@dataclass
class _ReminderOutcome:
    reminder_id: object
    decision: FiringDecision = FiringDecision.NONE
    entries: List[NotificationAuditEntry] = field(default_factory=list)
    skipped: Optional[str] = None
    failures: List[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    """Runs the daily reminder tick.

    Args:
        storage: Storage collaborator (active reminders, users, audit log)
        transport: Mail transport
        max_concurrency: Reminders dispatched at the same time within a tick
        tz_name: IANA timezone deciding what 'today' is
    """

    def __init__(
        self,
        storage: ReminderStore,
        transport: MailTransport,
        max_concurrency: int = settings.SCHEDULER_MAX_CONCURRENCY,
        tz_name: str = settings.TIMEZONE,
    ):
        self.storage = storage
        self.transport = transport
        self.max_concurrency = max(1, max_concurrency)
        self.tz_name = tz_name
        self.state = SchedulerState.IDLE
        self.last_tick_date: Optional[date] = None
        self.last_report: Optional[TickReport] = None

    @property
    def is_ticking(self) -> bool:
        return self.state == SchedulerState.TICKING

    async def _process_reminder(
        self,
        reminder: ReminderRecord,
        today: date,
        user_lookup: Callable[[str], Optional[UserRecord]],
        transport: MailTransport,
    ) -> _ReminderOutcome:
        outcome = _ReminderOutcome(reminder_id=reminder.id)

        try:
            outcome.decision = evaluate(reminder, today)
        except InvalidDateFormat as e:
            logger.error(f"Skipping reminder {reminder.id}: {str(e)}")
            outcome.failures.append(str(e))
            return outcome

        if outcome.decision == FiringDecision.NONE:
            return outcome

        logger.info(
            f"Reminder {reminder.id} '{reminder.title}' is due ({outcome.decision.value}) "
            f"for user {reminder.owner_id}"
        )

        try:
            user = user_lookup(reminder.owner_id)
            if user is None:
                raise UserNotFound(reminder.owner_id)
        except UserNotFound as e:
            logger.warning(f"Skipping reminder {reminder.id}: {str(e)}")
            outcome.skipped = str(e)
            return outcome
        except Exception as e:
            logger.error(f"User lookup failed for reminder {reminder.id}: {str(e)}", exc_info=True)
            outcome.failures.append(f"user lookup failed: {str(e)}")
            return outcome

        try:
            outcome.entries = await dispatcher.dispatch(reminder, outcome.decision, user, transport, today)
        except Exception as e:
            logger.error(f"Dispatch failed for reminder {reminder.id}: {str(e)}", exc_info=True)
            outcome.failures.append(f"dispatch failed: {str(e)}")
            return outcome

        if not outcome.entries:
            outcome.skipped = f"no notification recipients for user {user.id}"
            return outcome

        for entry in outcome.entries:
            if entry.status == NotificationStatus.FAILED:
                outcome.failures.append(f"send to {entry.recipient_address} failed: {entry.error}")

        # Audit rows are written before this reminder counts as done
        if self.storage is not None:
            for entry in outcome.entries:
                try:
                    self.storage.append_notification_audit(entry)
                except Exception as e:
                    logger.error(
                        f"Failed to record notification for reminder {reminder.id} "
                        f"to {entry.recipient_address}: {str(e)}"
                    )
                    outcome.failures.append(f"audit write failed for {entry.recipient_address}: {str(e)}")

        return outcome

    async def run_daily_tick(
        self,
        today: date,
        active_reminders: Iterable[ReminderRecord],
        user_lookup: Callable[[str], Optional[UserRecord]],
        transport: MailTransport,
    ) -> TickReport:
        """Evaluate and dispatch every active reminder for ``today``.

        Per-reminder failures are recorded in the report and never raised.

        Returns:
            TickReport: what was examined, fired, skipped and failed
        """
        report = TickReport(tick_date=today, started_at=_utcnow())
        reminders = [reminder for reminder in active_reminders if reminder.is_active]
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(reminder: ReminderRecord) -> _ReminderOutcome:
            async with semaphore:
                try:
                    return await self._process_reminder(reminder, today, user_lookup, transport)
                except Exception as e:
                    logger.error(f"Unexpected error on reminder {reminder.id}: {str(e)}", exc_info=True)
                    return _ReminderOutcome(reminder_id=reminder.id, failures=[f"unexpected error: {str(e)}"])

        outcomes = await asyncio.gather(*(run_one(reminder) for reminder in reminders))

        report.reminders_examined = len(reminders)
        for outcome in outcomes:
            if outcome.decision != FiringDecision.NONE:
                report.fired[outcome.decision.value] += 1
            if outcome.skipped:
                report.skipped.append(TickIssue(reminder_id=outcome.reminder_id, reason=outcome.skipped))
            for reason in outcome.failures:
                report.failures.append(TickIssue(reminder_id=outcome.reminder_id, reason=reason))
            report.audit_entries.extend(outcome.entries)

        report.recipients_notified = sum(
            1 for entry in report.audit_entries
            if entry.status in (NotificationStatus.SENT, NotificationStatus.SIMULATED)
        )
        report.finished_at = _utcnow()

        logger.info(
            f"Tick {today.isoformat()} done: examined={report.reminders_examined}, "
            f"on_date={report.fired['on_date']}, advance_notice={report.fired['advance_notice']}, "
            f"notified={report.recipients_notified}, skipped={len(report.skipped)}, "
            f"failures={len(report.failures)}"
        )
        return report

    async def tick(self, today: Optional[date] = None) -> TickReport:
        """Run one tick for ``today`` (default: the current local date).

        Returns a SKIPPED report without doing anything if a tick is already
        running, and a FAILED report if active reminders cannot be loaded.
        """
        if self.state == SchedulerState.TICKING:
            logger.warning("Reminder tick requested while another tick is running; skipping")
            now = _utcnow()
            return TickReport(
                tick_date=today or current_local_date(self.tz_name),
                status=TickStatus.SKIPPED,
                started_at=now,
                finished_at=now,
                error="tick already in progress",
            )

        self.state = SchedulerState.TICKING
        report = None
        try:
            if today is None:
                today = current_local_date(self.tz_name)
            logger.info(f"Running reminder check for {today.isoformat()}")

            try:
                reminders = self.storage.list_active_reminders()
            except Exception as e:
                logger.error(f"Reminder tick for {today.isoformat()} aborted: {str(e)}", exc_info=True)
                now = _utcnow()
                report = TickReport(
                    tick_date=today,
                    status=TickStatus.FAILED,
                    started_at=now,
                    finished_at=now,
                    error=str(e),
                )
                return report

            report = await self.run_daily_tick(today, reminders, self.storage.get_user, self.transport)
            self.last_tick_date = today
            return report
        finally:
            self.state = SchedulerState.IDLE
            if report is not None:
                self.last_report = report


def parse_run_time(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock time."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValueError(f"Invalid DAILY_RUN_TIME: {value!r} (expected HH:MM)") from None


def seconds_until_next_run(now: datetime, run_time: time) -> float:
    """Seconds from ``now`` until the next ``run_time`` on the wall clock of ``now``.

    A run time equal to ``now`` counts as tomorrow's.
    """
    candidate = now.replace(hour=run_time.hour, minute=run_time.minute, second=0, microsecond=0)
    if candidate <= now:
        candidate = candidate + timedelta(days=1)
    if now.tzinfo is not None:
        return (candidate.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()
    return (candidate - now).total_seconds()


async def scheduler_loop(
    scheduler: ReminderScheduler,
    stop: asyncio.Event,
    run_time: Optional[time] = None,
    tz_name: Optional[str] = None,
):
    """Tick once per calendar day at ``run_time`` until ``stop`` is set."""
    run_time = run_time or parse_run_time(settings.DAILY_RUN_TIME)
    tz_name = tz_name or scheduler.tz_name
    zone = ZoneInfo(tz_name)

    logger.info("Reminder scheduler started")
    logger.info(f"Daily run time: {run_time.strftime('%H:%M')} ({tz_name})")
    logger.info(f"Mail transport: {scheduler.transport.name} (configured: {scheduler.transport.is_configured()})")

    while not stop.is_set():
        delay = seconds_until_next_run(datetime.now(zone), run_time)
        logger.info(f"Next reminder check in {delay:.0f} seconds")

        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
            break
        except asyncio.TimeoutError:
            pass

        today = current_local_date(tz_name)
        if scheduler.last_tick_date == today:
            logger.info(f"Reminders for {today.isoformat()} were already checked; waiting for tomorrow")
            continue

        try:
            await scheduler.tick(today)
        except Exception as e:
            logger.error(f"Error in reminder tick for {today.isoformat()}: {str(e)}", exc_info=True)

    logger.info("Reminder scheduler shutting down gracefully")


async def _run_standalone():
    from crud import SqlReminderStore
    from mailer import build_transport

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, stop.set)

    scheduler = ReminderScheduler(SqlReminderStore(), build_transport(settings))
    await scheduler_loop(scheduler, stop)


def main():
    """Main entry point for running the scheduler without the API."""
    logger.info("=" * 60)
    logger.info("Memory Keeper - Reminder Scheduler")
    logger.info("=" * 60)

    try:
        asyncio.run(_run_standalone())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error in reminder scheduler: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info("Reminder scheduler stopped")
    sys.exit(0)


if __name__ == "__main__":
    main()

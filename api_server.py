"""FastAPI server for the reminder engine.

This module exposes the operator surface of the engine:
- the manual reminder check, which runs the exact same tick as the daily schedule
- scheduler status and mail transport checks
- notification history per user

The daily scheduler loop runs inside this process when SCHEDULER_ENABLED is set.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request

import schemas
from config import settings
from crud import SqlReminderStore
from date_rules import parse_calendar_date
from exceptions import InvalidDateFormat
from logger_config import setup_logger
from mailer import build_transport
from scheduler import ReminderScheduler, scheduler_loop

logger = setup_logger(__name__, 'api.log')


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the daily scheduler loop with the app and stop it on shutdown."""
    stop = asyncio.Event()
    task = None
    if settings.SCHEDULER_ENABLED:
        task = asyncio.create_task(scheduler_loop(app.state.scheduler, stop), name="reminder-scheduler")
    else:
        logger.warning("Scheduler is disabled in configuration; only manual checks will run")

    yield

    stop.set()
    if task is not None:
        await task


# Create FastAPI application
app = FastAPI(
    title="Memory Keeper Reminder API",
    description="Daily birthday, anniversary and custom reminder emails",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.store = SqlReminderStore()
app.state.scheduler = ReminderScheduler(app.state.store, build_transport(settings))


@app.get("/")
def root():
    """Root endpoint - service information"""
    return {
        "service": "Memory Keeper Reminder API",
        "version": "1.0.0",
        "status": "healthy",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "scheduler": "/admin/scheduler",
            "check": "/admin/reminders/check",
            "notifications": "/notifications"
        }
    }


@app.get("/health")
def health_check(request: Request):
    """Health check endpoint for monitoring"""
    scheduler = request.app.state.scheduler
    return {
        "status": "healthy",
        "service": "memory_keeper_reminders",
        "database": settings.DATABASE_URL.split("://")[0],
        "scheduler": scheduler.state.value
    }


@app.get("/admin/scheduler", response_model=schemas.SchedulerStatusResponse)
def scheduler_status(request: Request):
    """Current scheduler state and the report of the last tick."""
    scheduler = request.app.state.scheduler
    return schemas.SchedulerStatusResponse(
        state=scheduler.state.value,
        last_tick_date=scheduler.last_tick_date,
        last_report=scheduler.last_report
    )


@app.post("/admin/reminders/check", response_model=schemas.TickReport)
async def run_reminder_check(
    request: Request,
    today: Optional[str] = Query(None, description="Day to evaluate (YYYY-MM-DD). Default: today")
):
    """Run the reminder check now.

    Uses the same tick as the daily schedule, so the result for a given day is
    identical. Returns 409 if a tick is already running.
    """
    day = None
    if today is not None:
        try:
            day = parse_calendar_date(today)
        except InvalidDateFormat as e:
            raise HTTPException(status_code=422, detail=str(e))

    report = await request.app.state.scheduler.tick(day)

    if report.status == schemas.TickStatus.SKIPPED:
        raise HTTPException(status_code=409, detail="A reminder check is already running")
    if report.status == schemas.TickStatus.FAILED:
        logger.error(f"Manual reminder check failed: {report.error}")
    return report


@app.post("/admin/test-email", response_model=schemas.TransportCheckResponse)
async def check_email_transport(request: Request):
    """Check whether the mail transport is configured and reachable."""
    transport = request.app.state.scheduler.transport
    configured = transport.is_configured()
    can_send = await transport.verify() if configured else False

    if can_send:
        message = "Email service is working"
    elif configured:
        message = "Email service is configured but the connection test failed"
    else:
        message = "Email service is not configured; reminders are simulated"

    return schemas.TransportCheckResponse(
        transport=transport.name,
        configured=configured,
        can_send=can_send,
        message=message
    )


@app.get("/notifications", response_model=List[schemas.NotificationResponse])
def list_notifications(
    request: Request,
    owner_id: str = Query(..., description="User ID"),
    limit: int = Query(50, ge=1, le=1000, description="Maximum number of results")
):
    """Notification history for one user, newest first."""
    return request.app.state.store.list_notification_audits(owner_id, limit)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info"
    )

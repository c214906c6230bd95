"""
Nightly order cleanup.

Once a day (01:00 Asia/Kolkata by default) the order table is emptied of
anything still in flight, completed orders past the retention window are
dropped, and token numbering restarts at 1. Each step runs in its own
transaction; a failing step is logged and the next one still runs.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from . import config, store
from .models import Order, utcnow
from .status import OrderStatus

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    deleted_incomplete: Optional[int] = None
    deleted_completed: Optional[int] = None
    counter_reset: bool = False
    failed_steps: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_steps


def _run_step(session_factory, name: str, action: Callable, report: CleanupReport):
    with session_factory() as db:
        try:
            result = action(db)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Cleanup step '%s' failed", name)
            report.failed_steps.append(name)
            return None
    return result


def run_cleanup(
    session_factory,
    now: datetime = None,
    retention: timedelta = timedelta(hours=config.COMPLETED_RETENTION_HOURS),
) -> CleanupReport:
    now = now or utcnow()
    cutoff = now - retention
    report = CleanupReport()
    logger.info("Running daily order cleanup")

    report.deleted_incomplete = _run_step(
        session_factory,
        "delete-incomplete",
        lambda db: store.delete_where(db, Order.status != OrderStatus.COMPLETED.value),
        report,
    )
    if report.deleted_incomplete is not None:
        logger.info("Deleted %d incomplete orders", report.deleted_incomplete)

    report.deleted_completed = _run_step(
        session_factory,
        "delete-old-completed",
        lambda db: store.delete_where(
            db, Order.status == OrderStatus.COMPLETED.value, Order.created_at < cutoff
        ),
        report,
    )
    if report.deleted_completed is not None:
        logger.info("Deleted %d old completed orders", report.deleted_completed)

    if _run_step(session_factory, "reset-counter", lambda db: store.reset_order_sequence(db) or True, report):
        report.counter_reset = True
        logger.info("Token counter has been reset to 1")

    logger.info("Cleanup complete (%s)", "ok" if report.ok else "failed: " + ", ".join(report.failed_steps))
    return report


def next_run_after(now: datetime, hour: int, minute: int, tz: ZoneInfo) -> datetime:
    """First hour:minute wall-clock time in ``tz`` strictly after ``now`` (tz-aware)."""
    local = now.astimezone(tz)
    candidate = datetime.combine(local.date(), time(hour, minute), tzinfo=tz)
    if candidate <= local:
        candidate = datetime.combine(local.date() + timedelta(days=1), time(hour, minute), tzinfo=tz)
    return candidate


class CleanupScheduler:
    """Runs ``run_cleanup`` daily on a background asyncio task, one run at a time."""

    def __init__(
        self,
        session_factory,
        hour: int = config.CLEANUP_HOUR,
        minute: int = config.CLEANUP_MINUTE,
        timezone: str = config.CLEANUP_TIMEZONE,
        retention: timedelta = timedelta(hours=config.COMPLETED_RETENTION_HOURS),
    ) -> None:
        self.session_factory = session_factory
        self.hour = hour
        self.minute = minute
        self.tz = ZoneInfo(timezone)
        self.retention = retention
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_forever(), name="order-cleanup")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def next_run(self, now: datetime, previous: Optional[datetime] = None) -> datetime:
        """Next scheduled run after ``now``, never the slot of ``previous`` again."""
        if previous is not None and previous > now:
            now = previous
        return next_run_after(now, self.hour, self.minute, self.tz)

    async def _run_forever(self) -> None:
        previous = None
        while True:
            now = datetime.now(self.tz)
            run_at = self.next_run(now, previous)
            logger.info("Next order cleanup scheduled for %s", run_at.isoformat())
            await asyncio.sleep((run_at - now).total_seconds())
            previous = run_at
            try:
                await asyncio.to_thread(run_cleanup, self.session_factory, None, self.retention)
            except Exception:
                logger.exception("Scheduled order cleanup crashed")

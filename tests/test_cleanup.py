from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from canteen import cleanup, store
from canteen.cleanup import CleanupScheduler, next_run_after, run_cleanup
from canteen.models import Order, utcnow
from canteen.status import OrderStatus

from .helpers import run

IST = ZoneInfo("Asia/Kolkata")


def add_order(db, user, status=OrderStatus.PENDING, age=timedelta(0)):
    order = store.insert_order(db, user.id, [{"name": "Samosa", "quantity": 1, "price": 15}], 15)
    db.execute(
        update(Order)
        .where(Order.id == order.id)
        .values(status=status.value, created_at=utcnow() - age)
    )
    db.commit()
    return order.id


def remaining_ids(session_factory):
    with session_factory() as db:
        return list(db.scalars(select(Order.id).order_by(Order.id)))


def test_cleanup_keeps_recent_completed_and_restarts_numbering(session_factory, db, student):
    assert [add_order(db, student) for _ in range(3)] == [1, 2, 3]
    db.execute(update(Order).where(Order.id == 2).values(status=OrderStatus.COMPLETED.value))
    db.commit()

    report = run_cleanup(session_factory)

    assert report.ok
    assert report.deleted_incomplete == 2
    assert report.deleted_completed == 0
    assert report.counter_reset
    assert remaining_ids(session_factory) == [2]

    with session_factory() as fresh:
        assert add_order(fresh, student) == 1
        # id 2 is still held by the kept order
        assert add_order(fresh, student) == 3


def test_cleanup_drops_completed_orders_past_retention(session_factory, db, student):
    old = add_order(db, student, OrderStatus.COMPLETED, age=timedelta(hours=30))
    fresh = add_order(db, student, OrderStatus.COMPLETED, age=timedelta(hours=2))
    add_order(db, student, OrderStatus.READY, age=timedelta(minutes=5))

    report = run_cleanup(session_factory, retention=timedelta(hours=23))

    assert report.deleted_incomplete == 1
    assert report.deleted_completed == 1
    assert remaining_ids(session_factory) == [fresh]
    assert old not in remaining_ids(session_factory)


def test_cleanup_respects_explicit_now(session_factory, db, student):
    order_id = add_order(db, student, OrderStatus.COMPLETED)
    run_cleanup(session_factory, now=utcnow() + timedelta(days=2))
    assert order_id not in remaining_ids(session_factory)


def test_failed_step_does_not_block_the_rest(session_factory, db, student, monkeypatch):
    add_order(db, student, OrderStatus.COMPLETED, age=timedelta(hours=30))
    real_delete = store.delete_where
    calls = []

    def flaky_delete(session, *criteria):
        calls.append(criteria)
        if len(calls) == 1:
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        return real_delete(session, *criteria)

    monkeypatch.setattr(cleanup.store, "delete_where", flaky_delete)

    report = run_cleanup(session_factory)

    assert report.failed_steps == ["delete-incomplete"]
    assert report.deleted_incomplete is None
    assert report.deleted_completed == 1
    assert report.counter_reset
    assert not report.ok


def test_unexpected_error_in_a_step_is_contained(session_factory, db, student, monkeypatch):
    add_order(db, student)

    def broken_delete(session, *criteria):
        raise RuntimeError("driver bug")

    monkeypatch.setattr(cleanup.store, "delete_where", broken_delete)

    report = run_cleanup(session_factory)

    assert report.failed_steps == ["delete-incomplete", "delete-old-completed"]
    assert report.counter_reset
    assert remaining_ids(session_factory) == [1]


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2024, 3, 10, 0, 30, tzinfo=IST), datetime(2024, 3, 10, 1, 0, tzinfo=IST)),
        (datetime(2024, 3, 10, 1, 0, tzinfo=IST), datetime(2024, 3, 11, 1, 0, tzinfo=IST)),
        (datetime(2024, 3, 10, 22, 15, tzinfo=IST), datetime(2024, 3, 11, 1, 0, tzinfo=IST)),
        # 20:00 UTC is 01:30 IST the next day
        (datetime(2024, 3, 10, 20, 0, tzinfo=timezone.utc), datetime(2024, 3, 12, 1, 0, tzinfo=IST)),
    ],
)
def test_next_run_after(now, expected):
    assert next_run_after(now, 1, 0, IST) == expected


def test_scheduler_start_and_stop(session_factory):
    async def scenario():
        scheduler = CleanupScheduler(session_factory, hour=1, minute=0, timezone="Asia/Kolkata")
        scheduler.start()
        assert scheduler.running
        await scheduler.stop()
        assert not scheduler.running

    run(scenario())


def test_scheduler_never_repeats_a_slot_after_an_early_wakeup(session_factory):
    scheduler = CleanupScheduler(session_factory, hour=1, minute=0, timezone="Asia/Kolkata")
    previous = datetime(2024, 3, 10, 1, 0, tzinfo=IST)
    early = previous - timedelta(milliseconds=100)

    assert scheduler.next_run(early) == previous
    assert scheduler.next_run(early, previous) == datetime(2024, 3, 11, 1, 0, tzinfo=IST)
    assert scheduler.next_run(previous + timedelta(hours=2), previous) == datetime(2024, 3, 11, 1, 0, tzinfo=IST)

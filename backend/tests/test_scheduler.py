import asyncio
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from budgeting.scheduler import GoalProgressScheduler, seconds_until
from budgeting.schemas.goal import SavingsGoalCreate
from budgeting.services import ledger_service, savings_goal_service


def test_seconds_until_later_today():
    now = datetime(2024, 3, 10, 22, 30, tzinfo=timezone.utc)
    assert seconds_until(time(23, 0, tzinfo=timezone.utc), now) == 30 * 60


def test_seconds_until_wraps_to_tomorrow():
    now = datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)
    assert seconds_until(time(0, 0), now) == 24 * 3600


@pytest.mark.asyncio
async def test_run_once_records_report(session_factory, db, user_owner):
    goal = await savings_goal_service.create_goal(
        db,
        SavingsGoalCreate(
            owner=user_owner,
            name="Bike",
            target_amount=Decimal("800.00"),
            start_date=date(2024, 1, 1),
        ),
    )
    account = await ledger_service.create_account(db, user_owner, "Bike fund", "120.00")
    await savings_goal_service.link_account(db, goal.id, account.id)
    await db.commit()

    scheduler = GoalProgressScheduler(session_factory)
    report = await scheduler.run_once()

    assert report.succeeded == {goal.id: Decimal("120.00")}
    assert scheduler.last_report is report


@pytest.mark.asyncio
async def test_start_and_stop(session_factory, monkeypatch):
    scheduler = GoalProgressScheduler(session_factory)
    monkeypatch.setattr("budgeting.scheduler.seconds_until", lambda run_at: 3600)

    scheduler.start()
    await asyncio.sleep(0)
    assert scheduler.running

    await scheduler.stop()
    assert not scheduler.running


@pytest.mark.asyncio
async def test_loop_survives_failed_run(session_factory, monkeypatch):
    scheduler = GoalProgressScheduler(session_factory)
    calls = []

    async def failing_run():
        calls.append(1)
        raise RuntimeError("database unavailable")

    monkeypatch.setattr("budgeting.scheduler.seconds_until", lambda run_at: 0)
    monkeypatch.setattr(scheduler, "run_once", failing_run)

    scheduler.start()
    for _ in range(10):
        await asyncio.sleep(0)
    assert len(calls) > 1
    assert scheduler.running

    await scheduler.stop()

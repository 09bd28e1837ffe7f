import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budgeting.config import settings
from budgeting.exceptions import RecomputationError, UnknownAccountError, UnknownGoalError
from budgeting.models.account import BankAccount
from budgeting.models.savings_goal import (
    SavingsGoal,
    SavingsGoalAccount,
    SavingsGoalHistory,
)
from budgeting.schemas.goal import GoalProgress, SavingsGoalCreate
from budgeting.services.owner_service import resolve_owner
from budgeting.utils.money import ZERO, as_amount, to_amount

logger = logging.getLogger(__name__)


@dataclass
class RecomputationReport:
    """Outcome of a batch recomputation: amounts per goal plus isolated failures."""

    succeeded: dict[int, Decimal] = field(default_factory=dict)
    failed: list[RecomputationError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


# --- Goal CRUD ---


async def create_goal(db: AsyncSession, data: SavingsGoalCreate) -> SavingsGoal:
    await resolve_owner(db, data.owner)
    goal = SavingsGoal(
        owner_type=data.owner.owner_type,
        owner_id=data.owner.id,
        name=data.name.strip(),
        target_amount=to_amount(data.target_amount),
        start_date=data.start_date,
        target_date=data.target_date,
        purpose=data.purpose,
        monthly_contribution=(
            to_amount(data.monthly_contribution)
            if data.monthly_contribution is not None
            else None
        ),
    )
    db.add(goal)
    await db.flush()
    await db.refresh(goal)
    return goal


async def get_goal(db: AsyncSession, goal_id: int) -> SavingsGoal:
    goal = await db.get(SavingsGoal, goal_id)
    if goal is None:
        raise UnknownGoalError(goal_id)
    return goal


async def link_account(db: AsyncSession, goal_id: int, account_id: int) -> SavingsGoalAccount:
    """Attach an account to a goal; linking twice is a no-op."""
    await get_goal(db, goal_id)
    if await db.get(BankAccount, account_id) is None:
        raise UnknownAccountError(account_id)

    existing = await db.get(SavingsGoalAccount, (goal_id, account_id))
    if existing is not None:
        return existing
    link = SavingsGoalAccount(goal_id=goal_id, account_id=account_id)
    db.add(link)
    await db.flush()
    return link


async def unlink_account(db: AsyncSession, goal_id: int, account_id: int) -> bool:
    await get_goal(db, goal_id)
    result = await db.execute(
        delete(SavingsGoalAccount).where(
            SavingsGoalAccount.goal_id == goal_id,
            SavingsGoalAccount.account_id == account_id,
        )
    )
    await db.flush()
    return result.rowcount > 0


async def get_linked_account_ids(db: AsyncSession, goal_id: int) -> list[int]:
    result = await db.execute(
        select(SavingsGoalAccount.account_id)
        .where(SavingsGoalAccount.goal_id == goal_id)
        .order_by(SavingsGoalAccount.account_id)
    )
    return list(result.scalars().all())


# --- Progress tracking ---


async def recompute_goal(db: AsyncSession, goal_id: int) -> Decimal:
    """Sum the linked accounts' balances and append a progress snapshot.

    A goal without linked accounts records 0.00. A link whose account no
    longer exists raises UnknownAccountError and records nothing.
    """
    await get_goal(db, goal_id)
    linked_ids = await get_linked_account_ids(db, goal_id)

    total = ZERO
    if linked_ids:
        result = await db.execute(
            select(BankAccount.id, BankAccount.current_balance).where(
                BankAccount.id.in_(linked_ids)
            )
        )
        balances = {row.id: as_amount(row.current_balance) for row in result}
        missing = [account_id for account_id in linked_ids if account_id not in balances]
        if missing:
            raise UnknownAccountError(missing[0])
        total = sum(balances.values(), ZERO)

    db.add(SavingsGoalHistory(goal_id=goal_id, current_amount=total))
    await db.flush()
    return total


async def _recompute_in_own_session(
    session_factory: async_sessionmaker[AsyncSession], goal_id: int
) -> Decimal:
    # Closing the session rolls back anything left uncommitted
    async with session_factory() as session:
        amount = await recompute_goal(session, goal_id)
        await session.commit()
    return amount


async def get_goal_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(SavingsGoal.id).order_by(SavingsGoal.id))
    return list(result.scalars().all())


async def recompute_all_goals(
    session_factory: async_sessionmaker[AsyncSession],
    timeout: float | None = None,
) -> RecomputationReport:
    """Recompute every goal, each in its own session and commit.

    Failures and timeouts are isolated per goal and collected in the report.
    Cancelling the batch between goals keeps every snapshot already committed.
    """
    timeout = settings.GOAL_RECOMPUTE_TIMEOUT if timeout is None else timeout
    async with session_factory() as session:
        goal_ids = await get_goal_ids(session)

    report = RecomputationReport()
    for goal_id in goal_ids:
        try:
            amount = await asyncio.wait_for(
                _recompute_in_own_session(session_factory, goal_id), timeout
            )
        except asyncio.CancelledError:
            logger.info(
                "Savings goal recomputation cancelled after %d of %d goals",
                len(report.succeeded) + len(report.failed), len(goal_ids),
            )
            raise
        except Exception as e:
            logger.warning("Savings goal %d recomputation failed: %s", goal_id, e)
            report.failed.append(RecomputationError(goal_id, e))
            continue
        report.succeeded[goal_id] = amount

    logger.info(
        "Savings goal recomputation finished: %d succeeded, %d failed",
        len(report.succeeded), len(report.failed),
    )
    return report


async def get_progress_history(db: AsyncSession, goal_id: int) -> list[SavingsGoalHistory]:
    """Progress snapshots oldest first."""
    await get_goal(db, goal_id)
    result = await db.execute(
        select(SavingsGoalHistory)
        .where(SavingsGoalHistory.goal_id == goal_id)
        .order_by(SavingsGoalHistory.recorded_at, SavingsGoalHistory.id)
    )
    return list(result.scalars().all())


async def get_goal_progress(db: AsyncSession, goal_id: int) -> GoalProgress:
    """Latest recorded progress against the target (0.00 if never recomputed)."""
    goal = await get_goal(db, goal_id)
    result = await db.execute(
        select(SavingsGoalHistory)
        .where(SavingsGoalHistory.goal_id == goal_id)
        .order_by(SavingsGoalHistory.recorded_at.desc(), SavingsGoalHistory.id.desc())
        .limit(1)
    )
    latest = result.scalar_one_or_none()
    current = as_amount(latest.current_amount) if latest else ZERO
    target = as_amount(goal.target_amount)
    percent = float(current / target * 100) if target > 0 else 0.0

    return GoalProgress(
        goal_id=goal.id,
        name=goal.name,
        target_amount=target,
        current_amount=current,
        percent_complete=round(percent, 2),
        recorded_at=latest.recorded_at if latest else None,
    )


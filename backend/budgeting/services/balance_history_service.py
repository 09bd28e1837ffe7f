from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budgeting.models.account import AccountBalanceHistory, BankAccount
from budgeting.utils.money import as_amount


async def _last_recorded_balance(db: AsyncSession, account_id: int) -> Decimal | None:
    result = await db.execute(
        select(AccountBalanceHistory.balance)
        .where(AccountBalanceHistory.account_id == account_id)
        .order_by(AccountBalanceHistory.recorded_at.desc(), AccountBalanceHistory.id.desc())
        .limit(1)
    )
    balance = result.scalar_one_or_none()
    return None if balance is None else as_amount(balance)


async def record_initial_balance(
    db: AsyncSession, account: BankAccount
) -> AccountBalanceHistory:
    """Append the first snapshot for a newly created account."""
    entry = AccountBalanceHistory(
        account_id=account.id,
        balance=as_amount(account.current_balance),
    )
    db.add(entry)
    await db.flush()
    return entry


async def record_balance_change(
    db: AsyncSession, account_id: int, new_balance: Decimal
) -> AccountBalanceHistory | None:
    """Append a snapshot unless the balance equals the last recorded one.

    Must run inside the same database transaction as the balance write.
    """
    new_balance = as_amount(new_balance)
    if await _last_recorded_balance(db, account_id) == new_balance:
        return None

    entry = AccountBalanceHistory(account_id=account_id, balance=new_balance)
    db.add(entry)
    await db.flush()
    return entry


async def get_history(db: AsyncSession, account_id: int) -> list[AccountBalanceHistory]:
    """Snapshots oldest first; empty for unknown or deleted accounts."""
    result = await db.execute(
        select(AccountBalanceHistory)
        .where(AccountBalanceHistory.account_id == account_id)
        .order_by(AccountBalanceHistory.recorded_at, AccountBalanceHistory.id)
    )
    return list(result.scalars().all())

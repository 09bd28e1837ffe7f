import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from budgeting.config import settings
from budgeting.exceptions import (
    BudgetingError,
    InvalidAmountError,
    UnknownAccountError,
    UnknownCategoryError,
    UnknownLineItemError,
)
from budgeting.models.account import AccountBalanceHistory, BankAccount
from budgeting.models.budget import BudgetExpense, BudgetIncome, BudgetSaving
from budgeting.models.category import Category
from budgeting.models.one_off_budget import OneOffBudgetAccount, OneOffBudgetItem
from budgeting.models.savings_goal import SavingsGoalAccount
from budgeting.models.transaction import RelatedToType, Transaction
from budgeting.schemas.common import GroupOwner, RelatedTo, UserOwner, related_to_type
from budgeting.services.balance_history_service import (
    record_balance_change,
    record_initial_balance,
)
from budgeting.services.owner_service import resolve_owner
from budgeting.utils.date_helpers import utc_now
from budgeting.utils.locks import KeyedLocks
from budgeting.utils.money import AMOUNT_LIMIT, as_amount, to_amount

logger = logging.getLogger(__name__)

# Serializes balance writers per account within this process
account_locks = KeyedLocks()

_RELATED_MODELS = {
    RelatedToType.EXPENSE: BudgetExpense,
    RelatedToType.INCOME: BudgetIncome,
    RelatedToType.SAVINGS: BudgetSaving,
    RelatedToType.ONE_OFF_ITEM: OneOffBudgetItem,
}

# Each balance-touching write below runs inside a SAVEPOINT and then commits.
# A failure undoes only that write's statements; whatever the caller flushed
# earlier stays pending in the session.


# --- Account CRUD ---


async def create_account(
    db: AsyncSession,
    owner: UserOwner | GroupOwner,
    name: str,
    initial_balance: Decimal | int | str = Decimal("0.00"),
    *,
    account_type: str = "checking",
    bank_name: str | None = None,
    account_number: str | None = None,
    is_shared: bool = False,
) -> BankAccount:
    """Create an account and its first balance history record in one commit."""
    balance = to_amount(initial_balance)
    await resolve_owner(db, owner)
    if account_type not in settings.ACCOUNT_TYPES:
        raise BudgetingError(
            f"Unknown account type {account_type!r}; expected one of {settings.ACCOUNT_TYPES}"
        )

    async with db.begin_nested():
        account = BankAccount(
            name=name.strip(),
            account_type=account_type,
            bank_name=bank_name,
            account_number=account_number,
            current_balance=balance,
            is_shared=is_shared,
            owner_type=owner.owner_type,
            owner_id=owner.id,
        )
        db.add(account)
        await db.flush()
        await record_initial_balance(db, account)
    await db.commit()

    logger.info(
        "Account %d created for %s %d with balance %s",
        account.id, owner.kind, owner.id, balance,
    )
    return account


async def get_account(db: AsyncSession, account_id: int) -> BankAccount:
    account = await db.get(BankAccount, account_id, populate_existing=True)
    if account is None:
        raise UnknownAccountError(account_id)
    return account


async def get_accounts(
    db: AsyncSession, owner: UserOwner | GroupOwner | None = None
) -> list[BankAccount]:
    query = select(BankAccount).order_by(BankAccount.id)
    if owner is not None:
        query = query.where(
            BankAccount.owner_type == owner.owner_type,
            BankAccount.owner_id == owner.id,
        )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_balance(db: AsyncSession, account_id: int) -> Decimal:
    result = await db.execute(
        select(BankAccount.current_balance).where(BankAccount.id == account_id)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise UnknownAccountError(account_id)
    return as_amount(balance)


async def update_account(
    db: AsyncSession,
    account_id: int,
    *,
    name: str | None = None,
    bank_name: str | None = None,
    account_number: str | None = None,
    is_shared: bool | None = None,
) -> BankAccount:
    """Edit descriptive fields. Balance changes go through set_balance."""
    account = await get_account(db, account_id)
    if name is not None:
        account.name = name.strip()
    if bank_name is not None:
        account.bank_name = bank_name
    if account_number is not None:
        account.account_number = account_number
    if is_shared is not None:
        account.is_shared = is_shared
    await db.commit()
    return account


async def set_balance(
    db: AsyncSession, account_id: int, new_balance: Decimal | int | str
) -> BankAccount:
    """Explicit balance edit; history is appended only when the value changes."""
    balance = to_amount(new_balance)
    async with account_locks.hold(account_id):
        account = await get_account(db, account_id)
        async with db.begin_nested():
            if as_amount(account.current_balance) != balance:
                account.current_balance = balance
                await db.flush()
            await record_balance_change(db, account_id, balance)
        await db.commit()
    return account


async def delete_account(db: AsyncSession, account_id: int) -> None:
    """Delete an account with its history, transactions and goal/budget links."""
    async with account_locks.hold(account_id):
        await get_account(db, account_id)
        async with db.begin_nested():
            await db.execute(
                delete(AccountBalanceHistory).where(
                    AccountBalanceHistory.account_id == account_id
                )
            )
            await db.execute(delete(Transaction).where(Transaction.account_id == account_id))
            await db.execute(
                delete(SavingsGoalAccount).where(SavingsGoalAccount.account_id == account_id)
            )
            await db.execute(
                delete(OneOffBudgetAccount).where(OneOffBudgetAccount.account_id == account_id)
            )
            for model in (BudgetIncome, BudgetExpense, BudgetSaving):
                await db.execute(
                    update(model)
                    .where(model.account_id == account_id)
                    .values(account_id=None)
                )
            await db.execute(delete(BankAccount).where(BankAccount.id == account_id))
        await db.commit()
    logger.info("Account %d deleted", account_id)


# --- Transactions ---


async def _check_references(
    db: AsyncSession, category_id: int | None, related_to: RelatedTo | None
) -> None:
    if category_id is not None and await db.get(Category, category_id) is None:
        raise UnknownCategoryError(category_id)
    if related_to is not None:
        model = _RELATED_MODELS[related_to_type(related_to)]
        if await db.get(model, related_to.id) is None:
            raise UnknownLineItemError(related_to.id)


async def record_transaction(
    db: AsyncSession,
    account_id: int,
    amount: Decimal | int | str,
    *,
    transaction_date: date | None = None,
    category_id: int | None = None,
    description: str | None = None,
    related_to: RelatedTo | None = None,
) -> Transaction:
    """Append a transaction and apply it to the account balance atomically.

    The balance increment, the transaction row and the dependent balance
    history snapshot are committed together or not at all. Raises
    InvalidAmountError when the resulting balance would not fit NUMERIC(12, 2).
    """
    amount = to_amount(amount)

    async with account_locks.hold(account_id):
        await _check_references(db, category_id, related_to)
        account = await get_account(db, account_id)
        new_balance = as_amount(account.current_balance) + amount
        if abs(new_balance) >= AMOUNT_LIMIT:
            raise InvalidAmountError(
                f"Transaction of {amount} would take account {account_id} "
                f"to {new_balance}, beyond the supported range"
            )

        async with db.begin_nested():
            # Increment in SQL so writers in other processes cannot lose updates
            result = await db.execute(
                update(BankAccount)
                .where(BankAccount.id == account_id)
                .values(
                    current_balance=BankAccount.current_balance + amount,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Deleted by another process since the read above
                raise UnknownAccountError(account_id)

            txn = Transaction(
                account_id=account_id,
                category_id=category_id,
                amount=amount,
                description=description,
                transaction_date=transaction_date or date.today(),
                related_to_type=related_to_type(related_to) if related_to else None,
                related_to_id=related_to.id if related_to else None,
            )
            db.add(txn)
            await db.flush()

            account = await get_account(db, account_id)
            await record_balance_change(db, account_id, account.current_balance)
        await db.commit()

    logger.info(
        "Transaction %d applied to account %d: %s -> balance %s",
        txn.id, account_id, amount, as_amount(account.current_balance),
    )
    return txn


async def get_transactions(db: AsyncSession, account_id: int) -> list[Transaction]:
    """Transactions for an account, oldest first; empty for unknown accounts."""
    result = await db.execute(
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.transaction_date, Transaction.id)
    )
    return list(result.scalars().all())

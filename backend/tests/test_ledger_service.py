import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from budgeting.exceptions import (
    BudgetingError,
    InvalidAmountError,
    InvalidOwnerError,
    UnknownAccountError,
    UnknownCategoryError,
    UnknownLineItemError,
)
from budgeting.models.budget import BudgetExpense
from budgeting.models.category import CategoryType
from budgeting.models.savings_goal import SavingsGoalAccount
from budgeting.models.transaction import RelatedToType, Transaction
from budgeting.schemas.budget import ExpenseCreate
from budgeting.schemas.common import ExpenseRef, GroupOwner, UserOwner
from budgeting.schemas.goal import SavingsGoalCreate
from budgeting.services import (
    balance_history_service,
    budget_service,
    ledger_service,
    savings_goal_service,
)


@pytest.mark.asyncio
async def test_create_account_records_initial_balance(db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Checking", "1250.40")

    history = await balance_history_service.get_history(db, account.id)
    assert len(history) == 1
    assert Decimal(str(history[0].balance)) == Decimal("1250.40")
    assert await ledger_service.get_balance(db, account.id) == Decimal("1250.40")


@pytest.mark.asyncio
async def test_create_account_for_group(db, group_owner):
    account = await ledger_service.create_account(
        db, group_owner, "Joint", 0, account_type="savings", is_shared=True
    )

    accounts = await ledger_service.get_accounts(db, group_owner)
    assert [a.id for a in accounts] == [account.id]
    assert accounts[0].is_shared is True


@pytest.mark.asyncio
async def test_create_account_unknown_owner(db, user_owner):
    with pytest.raises(InvalidOwnerError):
        await ledger_service.create_account(db, UserOwner(id=999), "Ghost")
    with pytest.raises(InvalidOwnerError):
        await ledger_service.create_account(db, GroupOwner(id=user_owner.id), "Wrong kind")

    assert await ledger_service.get_accounts(db) == []


@pytest.mark.asyncio
async def test_create_account_rejects_bad_input(db, user_owner):
    with pytest.raises(InvalidAmountError):
        await ledger_service.create_account(db, user_owner, "Checking", "10.005")
    with pytest.raises(BudgetingError, match="Unknown account type"):
        await ledger_service.create_account(db, user_owner, "Checking", account_type="crypto")


@pytest.mark.asyncio
async def test_balance_follows_transactions(db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Checking", "100.00")
    amounts = ["25.50", "-40.00", "0", "14.50", "-14.50", "14.50"]

    for amount in amounts:
        await ledger_service.record_transaction(
            db, account.id, amount, transaction_date=date(2024, 3, 1)
        )

    expected = Decimal("100.00") + sum(Decimal(a) for a in amounts)
    assert await ledger_service.get_balance(db, account.id) == expected

    balances = [
        Decimal(str(h.balance)).quantize(Decimal("0.01"))
        for h in await balance_history_service.get_history(db, account.id)
    ]
    # Zero-amount transaction adds no snapshot; every snapshot differs from its predecessor
    assert balances == [
        Decimal("100.00"),
        Decimal("125.50"),
        Decimal("85.50"),
        Decimal("100.00"),
        Decimal("85.50"),
        Decimal("100.00"),
    ]
    assert all(prev != cur for prev, cur in zip(balances, balances[1:]))

    transactions = await ledger_service.get_transactions(db, account.id)
    assert len(transactions) == len(amounts)


@pytest.mark.asyncio
async def test_record_transaction_unknown_account(db):
    with pytest.raises(UnknownAccountError):
        await ledger_service.record_transaction(db, 404, "10.00")

    result = await db.execute(select(Transaction))
    assert result.scalars().all() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["NaN", "Infinity", "1.001", "1e10", True])
async def test_record_transaction_invalid_amount(db, user_owner, amount):
    account = await ledger_service.create_account(db, user_owner, "Checking", "10.00")

    with pytest.raises(InvalidAmountError):
        await ledger_service.record_transaction(db, account.id, amount)

    assert await ledger_service.get_balance(db, account.id) == Decimal("10.00")
    assert await ledger_service.get_transactions(db, account.id) == []


@pytest.mark.asyncio
async def test_record_transaction_checks_references(db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Checking", "10.00")

    with pytest.raises(UnknownCategoryError):
        await ledger_service.record_transaction(db, account.id, "5.00", category_id=77)
    with pytest.raises(UnknownLineItemError):
        await ledger_service.record_transaction(
            db, account.id, "5.00", related_to=ExpenseRef(id=12)
        )

    assert await ledger_service.get_balance(db, account.id) == Decimal("10.00")


@pytest.mark.asyncio
async def test_record_transaction_related_to_expense(db, user_owner, categories):
    account = await ledger_service.create_account(db, user_owner, "Checking", "500.00")
    budget = await budget_service.create_monthly_budget(db, user_owner, date(2024, 5, 1))
    expense = await budget_service.add_expense(
        db,
        budget.id,
        ExpenseCreate(
            category_id=categories[CategoryType.EXPENSE].id,
            amount=Decimal("120.00"),
            account_id=account.id,
        ),
    )
    await db.commit()

    txn = await ledger_service.record_transaction(
        db,
        account.id,
        "-120.00",
        category_id=categories[CategoryType.EXPENSE].id,
        related_to=ExpenseRef(id=expense.id),
    )

    assert txn.related_to_type == RelatedToType.EXPENSE
    assert txn.related_to_id == expense.id
    assert await ledger_service.get_balance(db, account.id) == Decimal("380.00")


@pytest.mark.asyncio
async def test_failed_commit_leaves_nothing_behind(db, user_owner, monkeypatch):
    account = await ledger_service.create_account(db, user_owner, "Checking", "50.00")
    account_id = account.id

    async def broken(*args, **kwargs):
        raise RuntimeError("history unavailable")

    monkeypatch.setattr(ledger_service, "record_balance_change", broken)
    with pytest.raises(RuntimeError):
        await ledger_service.record_transaction(db, account_id, "25.00")

    assert await ledger_service.get_balance(db, account_id) == Decimal("50.00")
    assert await ledger_service.get_transactions(db, account_id) == []
    assert len(await balance_history_service.get_history(db, account_id)) == 1

    # The session is still usable after the failed write
    monkeypatch.undo()
    await ledger_service.record_transaction(db, account_id, "5.00")
    assert await ledger_service.get_balance(db, account_id) == Decimal("55.00")


def goal_data(owner):
    return SavingsGoalCreate(
        owner=owner,
        name="Car",
        target_amount=Decimal("5000.00"),
        start_date=date(2024, 1, 1),
    )


@pytest.mark.asyncio
async def test_failed_transaction_keeps_pending_writes(db, session_factory, user_owner):
    goal = await savings_goal_service.create_goal(db, goal_data(user_owner))
    goal_id = goal.id

    with pytest.raises(UnknownAccountError):
        await ledger_service.record_transaction(db, 9999, "10.00")

    assert (await savings_goal_service.get_goal(db, goal_id)).name == "Car"
    await db.commit()
    async with session_factory() as other:
        assert (await savings_goal_service.get_goal(other, goal_id)).name == "Car"


@pytest.mark.asyncio
async def test_failed_account_creation_keeps_pending_writes(db, user_owner, monkeypatch):
    goal = await savings_goal_service.create_goal(db, goal_data(user_owner))
    goal_id = goal.id

    async def broken(*args, **kwargs):
        raise RuntimeError("history unavailable")

    monkeypatch.setattr(ledger_service, "record_initial_balance", broken)
    with pytest.raises(RuntimeError):
        await ledger_service.create_account(db, user_owner, "Checking", "10.00")

    assert await ledger_service.get_accounts(db) == []
    await db.commit()
    assert (await savings_goal_service.get_goal(db, goal_id)).name == "Car"


@pytest.mark.asyncio
async def test_transaction_cannot_overflow_balance(db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Vault", "9999999999.00")
    account_id = account.id

    with pytest.raises(InvalidAmountError):
        await ledger_service.record_transaction(db, account_id, "1.00")

    assert await ledger_service.get_balance(db, account_id) == Decimal("9999999999.00")
    assert await ledger_service.get_transactions(db, account_id) == []
    await ledger_service.record_transaction(db, account_id, "-0.99")
    assert await ledger_service.get_balance(db, account_id) == Decimal("9999999998.01")


@pytest.mark.asyncio
async def test_concurrent_transactions_do_not_lose_updates(session_factory, db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Checking", "0.00")

    async def deposit():
        async with session_factory() as session:
            await ledger_service.record_transaction(session, account.id, "1.25")

    await asyncio.gather(*(deposit() for _ in range(20)))

    assert await ledger_service.get_balance(db, account.id) == Decimal("25.00")
    assert len(await ledger_service.get_transactions(db, account.id)) == 20
    assert len(ledger_service.account_locks) == 0


@pytest.mark.asyncio
async def test_set_balance_appends_only_on_change(db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Cash", "20.00")

    await ledger_service.set_balance(db, account.id, "20.00")
    await ledger_service.set_balance(db, account.id, "35.00")

    history = await balance_history_service.get_history(db, account.id)
    assert [Decimal(str(h.balance)) for h in history] == [Decimal("20.00"), Decimal("35.00")]


@pytest.mark.asyncio
async def test_update_account(db, user_owner):
    account = await ledger_service.create_account(db, user_owner, "Checking")

    updated = await ledger_service.update_account(
        db, account.id, name="  Main checking ", bank_name="First Bank"
    )

    assert updated.name == "Main checking"
    assert updated.bank_name == "First Bank"
    with pytest.raises(UnknownAccountError):
        await ledger_service.update_account(db, 999, name="x")


@pytest.mark.asyncio
async def test_delete_account_cascades(db, user_owner, categories):
    account = await ledger_service.create_account(db, user_owner, "Savings", "300.00")
    await ledger_service.record_transaction(db, account.id, "50.00")
    goal = await savings_goal_service.create_goal(
        db,
        SavingsGoalCreate(
            owner=user_owner,
            name="Car",
            target_amount=Decimal("5000.00"),
            start_date=date(2024, 1, 1),
        ),
    )
    await savings_goal_service.link_account(db, goal.id, account.id)
    budget = await budget_service.create_monthly_budget(db, user_owner, date(2024, 6, 1))
    expense = await budget_service.add_expense(
        db,
        budget.id,
        ExpenseCreate(
            category_id=categories[CategoryType.EXPENSE].id,
            amount=Decimal("10.00"),
            account_id=account.id,
        ),
    )
    await db.commit()

    await ledger_service.delete_account(db, account.id)

    assert await balance_history_service.get_history(db, account.id) == []
    assert await ledger_service.get_transactions(db, account.id) == []
    links = await db.execute(select(SavingsGoalAccount))
    assert links.scalars().all() == []
    refreshed = await db.get(BudgetExpense, expense.id, populate_existing=True)
    assert refreshed.account_id is None
    with pytest.raises(UnknownAccountError):
        await ledger_service.get_balance(db, account.id)
    with pytest.raises(UnknownAccountError):
        await ledger_service.delete_account(db, account.id)

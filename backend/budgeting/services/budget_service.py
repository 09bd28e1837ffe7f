import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgeting.exceptions import (
    DuplicateBudgetError,
    UnknownAccountError,
    UnknownBudgetError,
    UnknownGoalError,
    UnknownLineItemError,
)
from budgeting.models.account import BankAccount
from budgeting.models.budget import (
    BudgetExpense,
    BudgetIncome,
    BudgetSaving,
    MonthlyBudget,
    RecurrenceType,
)
from budgeting.models.savings_goal import SavingsGoal
from budgeting.schemas.budget import (
    BudgetSummary,
    ExpenseCreate,
    IncomeCreate,
    LineItemCreate,
    SavingsCreate,
)
from budgeting.schemas.common import GroupOwner, Recurrence, UserOwner
from budgeting.services.category_service import get_category
from budgeting.services.owner_service import resolve_owner
from budgeting.utils.date_helpers import add_months, first_of_month, get_month_name
from budgeting.utils.money import as_amount, to_amount

logger = logging.getLogger(__name__)

_RECURRENCE_MONTHS = {
    RecurrenceType.MONTHLY: 1,
    RecurrenceType.QUARTERLY: 3,
    RecurrenceType.BIANNUAL: 6,
    RecurrenceType.ANNUAL: 12,
}


def next_occurrence(current: date, recurrence: Recurrence) -> date:
    """Date of the occurrence after `current` for a recurring line item."""
    if recurrence.type == RecurrenceType.CUSTOM:
        months = recurrence.interval
    else:
        months = _RECURRENCE_MONTHS[recurrence.type]
    return add_months(current, months)


# --- Monthly budgets ---


async def _find_budget(
    db: AsyncSession, owner: UserOwner | GroupOwner, budget_month: date
) -> MonthlyBudget | None:
    result = await db.execute(
        select(MonthlyBudget).where(
            MonthlyBudget.owner_type == owner.owner_type,
            MonthlyBudget.owner_id == owner.id,
            MonthlyBudget.budget_month == first_of_month(budget_month),
        )
    )
    return result.scalar_one_or_none()


async def create_monthly_budget(
    db: AsyncSession, owner: UserOwner | GroupOwner, budget_month: date
) -> MonthlyBudget:
    """Create the budget for an owner's month (any day of the month is accepted)."""
    await resolve_owner(db, owner)
    if await _find_budget(db, owner, budget_month) is not None:
        raise DuplicateBudgetError(
            f"{owner.kind.capitalize()} {owner.id} already has a budget for "
            f"{first_of_month(budget_month):%Y-%m}"
        )

    budget = MonthlyBudget(
        owner_type=owner.owner_type,
        owner_id=owner.id,
        budget_month=first_of_month(budget_month),
    )
    db.add(budget)
    await db.flush()
    await db.refresh(budget)
    logger.info(
        "Monthly budget %d created for %s %d (%s %d)",
        budget.id, owner.kind, owner.id,
        get_month_name(budget.budget_month.month), budget.budget_month.year,
    )
    return budget


async def get_budget(db: AsyncSession, budget_id: int) -> MonthlyBudget:
    budget = await db.get(MonthlyBudget, budget_id)
    if budget is None:
        raise UnknownBudgetError(budget_id)
    return budget


async def get_budgets(
    db: AsyncSession, owner: UserOwner | GroupOwner
) -> list[MonthlyBudget]:
    result = await db.execute(
        select(MonthlyBudget)
        .where(
            MonthlyBudget.owner_type == owner.owner_type,
            MonthlyBudget.owner_id == owner.id,
        )
        .order_by(MonthlyBudget.budget_month)
    )
    return list(result.scalars().all())


# --- Line items ---


async def _validate_line_item(
    db: AsyncSession, budget_id: int, data: LineItemCreate
) -> None:
    await get_budget(db, budget_id)
    await get_category(db, data.category_id)
    if data.account_id is not None and await db.get(BankAccount, data.account_id) is None:
        raise UnknownAccountError(data.account_id)


def _recurrence_columns(recurrence: Recurrence | None) -> dict:
    if recurrence is None:
        return {"is_recurring": False, "recurrence_type": None, "recurrence_interval": None}
    return {
        "is_recurring": True,
        "recurrence_type": recurrence.type,
        "recurrence_interval": recurrence.interval,
    }


async def add_income(db: AsyncSession, budget_id: int, data: IncomeCreate) -> BudgetIncome:
    await _validate_line_item(db, budget_id, data)
    income = BudgetIncome(
        budget_id=budget_id,
        category_id=data.category_id,
        account_id=data.account_id,
        amount=to_amount(data.amount),
        description=data.description,
        income_date=data.income_date,
        **_recurrence_columns(data.recurrence),
    )
    db.add(income)
    await db.flush()
    return income


async def add_expense(db: AsyncSession, budget_id: int, data: ExpenseCreate) -> BudgetExpense:
    await _validate_line_item(db, budget_id, data)
    expense = BudgetExpense(
        budget_id=budget_id,
        category_id=data.category_id,
        account_id=data.account_id,
        amount=to_amount(data.amount),
        description=data.description,
        due_date=data.due_date,
        is_paid=data.is_paid,
        next_occurrence=(
            next_occurrence(data.due_date, data.recurrence)
            if data.recurrence is not None and data.due_date is not None
            else None
        ),
        **_recurrence_columns(data.recurrence),
    )
    db.add(expense)
    await db.flush()
    return expense


async def add_savings(db: AsyncSession, budget_id: int, data: SavingsCreate) -> BudgetSaving:
    await _validate_line_item(db, budget_id, data)
    if data.goal_id is not None and await db.get(SavingsGoal, data.goal_id) is None:
        raise UnknownGoalError(data.goal_id)
    saving = BudgetSaving(
        budget_id=budget_id,
        category_id=data.category_id,
        account_id=data.account_id,
        amount=to_amount(data.amount),
        description=data.description,
        goal_id=data.goal_id,
        transfer_date=data.transfer_date,
        is_transferred=data.is_transferred,
    )
    db.add(saving)
    await db.flush()
    return saving


async def mark_expense_paid(db: AsyncSession, expense_id: int) -> BudgetExpense:
    """Mark an expense paid and roll a recurring one forward to its next due date."""
    expense = await db.get(BudgetExpense, expense_id)
    if expense is None:
        raise UnknownLineItemError(expense_id)
    expense.is_paid = True
    if expense.is_recurring and expense.next_occurrence is not None:
        recurrence = Recurrence(
            type=expense.recurrence_type, interval=expense.recurrence_interval
        )
        expense.next_occurrence = next_occurrence(expense.next_occurrence, recurrence)
    await db.flush()
    return expense


# --- Summary ---


def _total(model):
    return (
        select(func.coalesce(func.sum(model.amount), 0))
        .where(model.budget_id == MonthlyBudget.id)
        .scalar_subquery()
    )


async def summarize(db: AsyncSession, budget_id: int) -> BudgetSummary:
    """Totals for a budget computed from its line items at call time.

    One SELECT with independent per-table subqueries, so the three totals come
    from the same snapshot and never multiply each other the way a joined
    GROUP BY would.
    """
    result = await db.execute(
        select(
            MonthlyBudget,
            _total(BudgetIncome).label("total_income"),
            _total(BudgetExpense).label("total_expenses"),
            _total(BudgetSaving).label("total_savings"),
        ).where(MonthlyBudget.id == budget_id)
    )
    row = result.one_or_none()
    if row is None:
        raise UnknownBudgetError(budget_id)

    budget = row.MonthlyBudget
    total_income = as_amount(row.total_income)
    total_expenses = as_amount(row.total_expenses)
    total_savings = as_amount(row.total_savings)
    return BudgetSummary(
        budget_id=budget.id,
        owner_type=budget.owner_type,
        owner_id=budget.owner_id,
        budget_month=budget.budget_month,
        total_income=total_income,
        total_expenses=total_expenses,
        total_savings=total_savings,
        personal_remainder=total_income - total_expenses - total_savings,
    )


async def summarize_for_owner(
    db: AsyncSession, owner: UserOwner | GroupOwner, budget_month: date
) -> BudgetSummary:
    budget = await _find_budget(db, owner, budget_month)
    if budget is None:
        raise UnknownBudgetError(
            None,
            f"No budget for {owner.kind} {owner.id} in {first_of_month(budget_month):%Y-%m}",
        )
    return await summarize(db, budget.id)

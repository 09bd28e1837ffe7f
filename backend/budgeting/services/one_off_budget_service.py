from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from budgeting.exceptions import (
    UnknownAccountError,
    UnknownGoalError,
    UnknownLineItemError,
    UnknownOneOffBudgetError,
)
from budgeting.models.account import BankAccount
from budgeting.models.one_off_budget import (
    BudgetItemOption,
    OneOffBudget,
    OneOffBudgetAccount,
    OneOffBudgetCategory,
    OneOffBudgetItem,
)
from budgeting.models.savings_goal import SavingsGoal
from budgeting.schemas.one_off import OneOffBudgetCreate, OneOffSummary, OptionCreate
from budgeting.services.owner_service import resolve_owner
from budgeting.utils.money import as_amount, to_amount


# --- Budget CRUD ---


async def create_one_off_budget(db: AsyncSession, data: OneOffBudgetCreate) -> OneOffBudget:
    await resolve_owner(db, data.owner)
    if data.linked_goal_id is not None and await db.get(SavingsGoal, data.linked_goal_id) is None:
        raise UnknownGoalError(data.linked_goal_id)

    budget = OneOffBudget(
        owner_type=data.owner.owner_type,
        owner_id=data.owner.id,
        name=data.name.strip(),
        total_amount=to_amount(data.total_amount),
        start_date=data.start_date,
        end_date=data.end_date,
        purpose=data.purpose,
        linked_goal_id=data.linked_goal_id,
    )
    db.add(budget)
    await db.flush()
    await db.refresh(budget)
    return budget


async def get_one_off_budget(db: AsyncSession, budget_id: int) -> OneOffBudget:
    budget = await db.get(OneOffBudget, budget_id)
    if budget is None:
        raise UnknownOneOffBudgetError(budget_id)
    return budget


async def link_account(db: AsyncSession, budget_id: int, account_id: int) -> OneOffBudgetAccount:
    await get_one_off_budget(db, budget_id)
    if await db.get(BankAccount, account_id) is None:
        raise UnknownAccountError(account_id)

    existing = await db.get(OneOffBudgetAccount, (budget_id, account_id))
    if existing is not None:
        return existing
    link = OneOffBudgetAccount(budget_id=budget_id, account_id=account_id)
    db.add(link)
    await db.flush()
    return link


# --- Categories, items, options ---


async def add_category(
    db: AsyncSession, budget_id: int, name: str, planned_amount: Decimal | int | str
) -> OneOffBudgetCategory:
    await get_one_off_budget(db, budget_id)
    category = OneOffBudgetCategory(
        budget_id=budget_id,
        name=name.strip(),
        planned_amount=to_amount(planned_amount),
    )
    db.add(category)
    await db.flush()
    return category


async def add_item(
    db: AsyncSession,
    category_id: int,
    name: str,
    description: str | None = None,
) -> OneOffBudgetItem:
    if await db.get(OneOffBudgetCategory, category_id) is None:
        raise UnknownLineItemError(category_id)
    item = OneOffBudgetItem(category_id=category_id, name=name.strip(), description=description)
    db.add(item)
    await db.flush()
    return item


async def add_option(db: AsyncSession, item_id: int, data: OptionCreate) -> BudgetItemOption:
    if await db.get(OneOffBudgetItem, item_id) is None:
        raise UnknownLineItemError(item_id)
    option = BudgetItemOption(
        item_id=item_id,
        name=data.name.strip(),
        price=to_amount(data.price),
        description=data.description,
        url=data.url,
        is_selected=False,
    )
    db.add(option)
    await db.flush()
    if data.is_selected:
        option = await select_option(db, option.id)
    return option


async def select_option(db: AsyncSession, option_id: int) -> BudgetItemOption:
    """Mark an option selected; any other selected option of the item is cleared."""
    option = await db.get(BudgetItemOption, option_id)
    if option is None:
        raise UnknownLineItemError(option_id)

    await db.execute(
        update(BudgetItemOption)
        .where(
            BudgetItemOption.item_id == option.item_id,
            BudgetItemOption.id != option.id,
            BudgetItemOption.is_selected == True,  # noqa: E712
        )
        .values(is_selected=False)
    )
    option.is_selected = True
    await db.flush()
    return option


async def get_options(db: AsyncSession, item_id: int) -> list[BudgetItemOption]:
    result = await db.execute(
        select(BudgetItemOption)
        .where(BudgetItemOption.item_id == item_id)
        .order_by(BudgetItemOption.id)
    )
    return list(result.scalars().all())


# --- Summary ---


async def summarize_one_off(db: AsyncSession, budget_id: int) -> OneOffSummary:
    budget = await get_one_off_budget(db, budget_id)

    planned_result = await db.execute(
        select(func.coalesce(func.sum(OneOffBudgetCategory.planned_amount), 0)).where(
            OneOffBudgetCategory.budget_id == budget_id
        )
    )
    planned_total = as_amount(planned_result.scalar())

    selected_result = await db.execute(
        select(func.coalesce(func.sum(BudgetItemOption.price), 0))
        .select_from(BudgetItemOption)
        .join(OneOffBudgetItem, OneOffBudgetItem.id == BudgetItemOption.item_id)
        .join(OneOffBudgetCategory, OneOffBudgetCategory.id == OneOffBudgetItem.category_id)
        .where(
            OneOffBudgetCategory.budget_id == budget_id,
            BudgetItemOption.is_selected == True,  # noqa: E712
        )
    )
    selected_total = as_amount(selected_result.scalar())

    selected_items = (
        select(BudgetItemOption.item_id)
        .where(BudgetItemOption.is_selected == True)  # noqa: E712
    )
    unselected_result = await db.execute(
        select(func.count(OneOffBudgetItem.id))
        .select_from(OneOffBudgetItem)
        .join(OneOffBudgetCategory, OneOffBudgetCategory.id == OneOffBudgetItem.category_id)
        .where(
            OneOffBudgetCategory.budget_id == budget_id,
            OneOffBudgetItem.id.not_in(selected_items),
        )
    )

    total_amount = as_amount(budget.total_amount)
    return OneOffSummary(
        budget_id=budget.id,
        name=budget.name,
        total_amount=total_amount,
        planned_total=planned_total,
        selected_total=selected_total,
        remaining=total_amount - selected_total,
        items_without_selection=unselected_result.scalar(),
    )

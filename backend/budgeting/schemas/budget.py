from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from budgeting.models.owner_type import OwnerType
from budgeting.schemas.common import Recurrence


class LineItemCreate(BaseModel):
    category_id: int
    amount: Decimal
    account_id: int | None = None
    description: str | None = None


class IncomeCreate(LineItemCreate):
    income_date: date | None = None
    recurrence: Recurrence | None = None


class ExpenseCreate(LineItemCreate):
    due_date: date | None = None
    is_paid: bool = False
    recurrence: Recurrence | None = None


class SavingsCreate(LineItemCreate):
    goal_id: int | None = None
    transfer_date: date | None = None
    is_transferred: bool = False


class BudgetSummary(BaseModel):
    budget_id: int
    owner_type: OwnerType
    owner_id: int
    budget_month: date
    total_income: Decimal = Field(Decimal("0.00"))
    total_expenses: Decimal = Field(Decimal("0.00"))
    total_savings: Decimal = Field(Decimal("0.00"))
    # Income - expenses - savings; negative means overspent
    personal_remainder: Decimal = Field(Decimal("0.00"))

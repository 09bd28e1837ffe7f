from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from budgeting.schemas.common import Owner


class OneOffBudgetCreate(BaseModel):
    owner: Owner
    name: str = Field(..., min_length=1, max_length=100)
    total_amount: Decimal
    start_date: date
    end_date: date | None = None
    purpose: str | None = Field(None, max_length=255)
    linked_goal_id: int | None = None

    @model_validator(mode="after")
    def _dates_in_order(self) -> "OneOffBudgetCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class OptionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal
    description: str | None = None
    url: str | None = Field(None, max_length=255)
    is_selected: bool = False


class OneOffSummary(BaseModel):
    budget_id: int
    name: str
    total_amount: Decimal
    planned_total: Decimal
    selected_total: Decimal
    # total_amount - selected_total
    remaining: Decimal
    items_without_selection: int

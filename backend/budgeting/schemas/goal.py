from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from budgeting.schemas.common import Owner


class SavingsGoalCreate(BaseModel):
    owner: Owner
    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal
    start_date: date
    target_date: date | None = None
    purpose: str | None = Field(None, max_length=255)
    monthly_contribution: Decimal | None = None

    @model_validator(mode="after")
    def _dates_in_order(self) -> "SavingsGoalCreate":
        if self.target_date is not None and self.target_date < self.start_date:
            raise ValueError("target_date must not be before start_date")
        return self


class GoalProgress(BaseModel):
    goal_id: int
    name: str
    target_amount: Decimal
    current_amount: Decimal
    percent_complete: float
    recorded_at: datetime | None = None

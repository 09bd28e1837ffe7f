from budgeting.schemas.common import (
    ExpenseRef,
    GroupOwner,
    IncomeRef,
    OneOffItemRef,
    Owner,
    Recurrence,
    RelatedTo,
    SavingsRef,
    UserOwner,
)
from budgeting.schemas.budget import (
    BudgetSummary,
    ExpenseCreate,
    IncomeCreate,
    SavingsCreate,
)
from budgeting.schemas.goal import GoalProgress, SavingsGoalCreate
from budgeting.schemas.one_off import OneOffBudgetCreate, OneOffSummary, OptionCreate

__all__ = [
    "Owner",
    "UserOwner",
    "GroupOwner",
    "RelatedTo",
    "ExpenseRef",
    "IncomeRef",
    "SavingsRef",
    "OneOffItemRef",
    "Recurrence",
    "BudgetSummary",
    "IncomeCreate",
    "ExpenseCreate",
    "SavingsCreate",
    "SavingsGoalCreate",
    "GoalProgress",
    "OneOffBudgetCreate",
    "OptionCreate",
    "OneOffSummary",
]

from budgeting.models.base import Base
from budgeting.models.owner_type import OwnerType
from budgeting.models.owner import Group, GroupMember, User
from budgeting.models.category import Category, CategoryType
from budgeting.models.account import AccountBalanceHistory, BankAccount
from budgeting.models.transaction import RelatedToType, Transaction
from budgeting.models.savings_goal import (
    SavingsGoal,
    SavingsGoalAccount,
    SavingsGoalHistory,
)
from budgeting.models.budget import (
    BudgetExpense,
    BudgetIncome,
    BudgetSaving,
    MonthlyBudget,
    RecurrenceType,
)
from budgeting.models.one_off_budget import (
    BudgetItemOption,
    OneOffBudget,
    OneOffBudgetAccount,
    OneOffBudgetCategory,
    OneOffBudgetItem,
)

__all__ = [
    "Base",
    "OwnerType",
    "User",
    "Group",
    "GroupMember",
    "Category",
    "CategoryType",
    "BankAccount",
    "AccountBalanceHistory",
    "Transaction",
    "RelatedToType",
    "SavingsGoal",
    "SavingsGoalAccount",
    "SavingsGoalHistory",
    "MonthlyBudget",
    "BudgetIncome",
    "BudgetExpense",
    "BudgetSaving",
    "RecurrenceType",
    "OneOffBudget",
    "OneOffBudgetAccount",
    "OneOffBudgetCategory",
    "OneOffBudgetItem",
    "BudgetItemOption",
]

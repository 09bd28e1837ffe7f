import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from budgeting.models.base import Base, OwnedMixin


class RecurrenceType(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUAL = "biannual"
    ANNUAL = "annual"
    CUSTOM = "custom"


class MonthlyBudget(OwnedMixin, Base):
    """Budget for one owner and month. Totals are computed, never stored."""

    __tablename__ = "monthly_budgets"
    __table_args__ = (
        UniqueConstraint(
            "owner_type", "owner_id", "budget_month", name="uq_monthly_budget_owner_month"
        ),
        Index("ix_monthly_budgets_owner", "owner_type", "owner_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # First day of the month
    budget_month: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class _LineItemColumns:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    budget_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("monthly_budgets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    account_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("bank_accounts.id", ondelete="SET NULL"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class _RecurrenceColumns:
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_type: Mapped[RecurrenceType | None] = mapped_column(
        Enum(RecurrenceType), nullable=True
    )
    # Months between occurrences when recurrence_type is CUSTOM
    recurrence_interval: Mapped[int | None] = mapped_column(Integer, nullable=True)


class BudgetIncome(_LineItemColumns, _RecurrenceColumns, Base):
    __tablename__ = "budget_incomes"

    income_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class BudgetExpense(_LineItemColumns, _RecurrenceColumns, Base):
    __tablename__ = "budget_expenses"

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    next_occurrence: Mapped[date | None] = mapped_column(Date, nullable=True)


class BudgetSaving(_LineItemColumns, Base):
    __tablename__ = "budget_savings"

    goal_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("savings_goals.id", ondelete="CASCADE"), nullable=True
    )
    transfer_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_transferred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator

from budgeting.models.budget import RecurrenceType
from budgeting.models.owner_type import OwnerType
from budgeting.models.transaction import RelatedToType


# --- Owner variant ---


class UserOwner(BaseModel):
    kind: Literal["user"] = "user"
    id: int = Field(..., gt=0)

    @property
    def owner_type(self) -> OwnerType:
        return OwnerType.USER


class GroupOwner(BaseModel):
    kind: Literal["group"] = "group"
    id: int = Field(..., gt=0)

    @property
    def owner_type(self) -> OwnerType:
        return OwnerType.GROUP


Owner = Annotated[Union[UserOwner, GroupOwner], Field(discriminator="kind")]


def owner_of(row) -> UserOwner | GroupOwner:
    """Rebuild the owner variant from a row's owner_type/owner_id columns."""
    if row.owner_type == OwnerType.USER:
        return UserOwner(id=row.owner_id)
    return GroupOwner(id=row.owner_id)


# --- Transaction "related to" variant ---


class ExpenseRef(BaseModel):
    kind: Literal["expense"] = "expense"
    id: int = Field(..., gt=0)


class IncomeRef(BaseModel):
    kind: Literal["income"] = "income"
    id: int = Field(..., gt=0)


class SavingsRef(BaseModel):
    kind: Literal["savings"] = "savings"
    id: int = Field(..., gt=0)


class OneOffItemRef(BaseModel):
    kind: Literal["one_off_item"] = "one_off_item"
    id: int = Field(..., gt=0)


RelatedTo = Annotated[
    Union[ExpenseRef, IncomeRef, SavingsRef, OneOffItemRef],
    Field(discriminator="kind"),
]


def related_to_type(ref) -> RelatedToType:
    return RelatedToType(ref.kind)


# --- Recurrence ---


class Recurrence(BaseModel):
    type: RecurrenceType
    # Months between occurrences; required for CUSTOM
    interval: int | None = Field(None, gt=0)

    @model_validator(mode="after")
    def _custom_needs_interval(self) -> "Recurrence":
        if self.type == RecurrenceType.CUSTOM and self.interval is None:
            raise ValueError("Custom recurrence requires a positive interval")
        return self

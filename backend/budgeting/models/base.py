from sqlalchemy import Enum, Index, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from budgeting.models.owner_type import OwnerType


class Base(DeclarativeBase):
    pass


class OwnedMixin:
    """Columns shared by rows owned by exactly one user or group."""

    owner_type: Mapped[OwnerType] = mapped_column(Enum(OwnerType), nullable=False)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (Index(f"ix_{cls.__tablename__}_owner", "owner_type", "owner_id"),)

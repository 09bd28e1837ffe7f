from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budgeting.config import settings
from budgeting.exceptions import UnknownCategoryError
from budgeting.models.category import Category, CategoryType


async def create_category(
    db: AsyncSession,
    name: str,
    category_type: CategoryType,
    icon: str | None = None,
    color: str | None = None,
) -> Category:
    category = Category(
        name=name.strip(),
        category_type=category_type,
        icon=icon,
        color=color,
    )
    db.add(category)
    await db.flush()
    await db.refresh(category)
    return category


async def get_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise UnknownCategoryError(category_id)
    return category


async def get_categories(
    db: AsyncSession, category_type: CategoryType | None = None
) -> list[Category]:
    query = select(Category).order_by(Category.category_type, Category.name)
    if category_type is not None:
        query = query.where(Category.category_type == category_type)
    result = await db.execute(query)
    return list(result.scalars().all())


async def seed_default_categories(db: AsyncSession) -> int:
    """Create the default categories if the table is empty. Returns count created."""
    result = await db.execute(select(Category).limit(1))
    if result.scalar_one_or_none() is not None:
        return 0

    defaults = [
        Category(name=name, category_type=CategoryType(kind))
        for name, kind in settings.DEFAULT_CATEGORIES
    ]
    db.add_all(defaults)
    await db.flush()
    return len(defaults)

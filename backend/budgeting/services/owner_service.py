import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budgeting.exceptions import InvalidOwnerError
from budgeting.models.owner import Group, GroupMember, User
from budgeting.schemas.common import GroupOwner, UserOwner

logger = logging.getLogger(__name__)


# --- Users & Groups ---


async def create_user(db: AsyncSession, username: str, email: str) -> User:
    user = User(username=username.strip(), email=email.strip().lower())
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


async def create_group(db: AsyncSession, name: str) -> Group:
    group = Group(name=name.strip())
    db.add(group)
    await db.flush()
    await db.refresh(group)
    return group


async def add_group_member(db: AsyncSession, group_id: int, user_id: int) -> GroupMember:
    """Add a user to a group. Re-adding an existing member returns the original row."""
    if await db.get(Group, group_id) is None:
        raise InvalidOwnerError(f"Group with id {group_id} not found")
    if await db.get(User, user_id) is None:
        raise InvalidOwnerError(f"User with id {user_id} not found")

    existing = await db.get(GroupMember, (group_id, user_id))
    if existing is not None:
        return existing

    member = GroupMember(group_id=group_id, user_id=user_id)
    db.add(member)
    await db.flush()
    await db.refresh(member)
    logger.info("User %d joined group %d", user_id, group_id)
    return member


async def get_group_members(db: AsyncSession, group_id: int) -> list[User]:
    result = await db.execute(
        select(User)
        .join(GroupMember, GroupMember.user_id == User.id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at, User.id)
    )
    return list(result.scalars().all())


# --- Owner validation ---


async def resolve_owner(db: AsyncSession, owner: UserOwner | GroupOwner) -> None:
    """Ensure the owner variant references an existing user or group.

    Raises InvalidOwnerError for anything that is not exactly one existing
    user or group.
    """
    if isinstance(owner, UserOwner):
        model = User
    elif isinstance(owner, GroupOwner):
        model = Group
    else:
        raise InvalidOwnerError(f"Unsupported owner reference: {owner!r}")

    if await db.get(model, owner.id) is None:
        raise InvalidOwnerError(f"{owner.kind.capitalize()} with id {owner.id} not found")

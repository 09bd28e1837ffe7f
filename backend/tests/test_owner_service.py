import pytest

from budgeting.exceptions import InvalidOwnerError, UnknownCategoryError
from budgeting.models.category import CategoryType
from budgeting.schemas.common import GroupOwner, UserOwner, owner_of
from budgeting.services import category_service, ledger_service, owner_service


@pytest.mark.asyncio
async def test_group_membership(db):
    alice = await owner_service.create_user(db, "alice", "Alice@Example.com ")
    bob = await owner_service.create_user(db, "bob", "bob@example.com")
    group = await owner_service.create_group(db, "Flat 4B")

    await owner_service.add_group_member(db, group.id, alice.id)
    await owner_service.add_group_member(db, group.id, bob.id)
    await owner_service.add_group_member(db, group.id, alice.id)

    members = await owner_service.get_group_members(db, group.id)
    assert alice.email == "alice@example.com"
    assert sorted(m.username for m in members) == ["alice", "bob"]


@pytest.mark.asyncio
async def test_add_member_requires_existing_rows(db, user_owner, group_owner):
    with pytest.raises(InvalidOwnerError):
        await owner_service.add_group_member(db, 99, user_owner.id)
    with pytest.raises(InvalidOwnerError):
        await owner_service.add_group_member(db, group_owner.id, 99)


@pytest.mark.asyncio
async def test_resolve_owner(db, user_owner, group_owner):
    await owner_service.resolve_owner(db, user_owner)
    await owner_service.resolve_owner(db, group_owner)

    with pytest.raises(InvalidOwnerError):
        await owner_service.resolve_owner(db, UserOwner(id=404))
    with pytest.raises(InvalidOwnerError):
        await owner_service.resolve_owner(db, object())


@pytest.mark.asyncio
async def test_owner_round_trips_through_rows(db, group_owner):
    account = await ledger_service.create_account(db, group_owner, "Joint")

    assert owner_of(account) == GroupOwner(id=group_owner.id)


# --- Categories ---


@pytest.mark.asyncio
async def test_seed_default_categories_once(db):
    created = await category_service.seed_default_categories(db)

    assert created > 0
    assert await category_service.seed_default_categories(db) == 0
    incomes = await category_service.get_categories(db, CategoryType.INCOME)
    assert incomes
    assert all(c.category_type == CategoryType.INCOME for c in incomes)


@pytest.mark.asyncio
async def test_get_category(db, categories):
    savings = categories[CategoryType.SAVINGS]

    assert (await category_service.get_category(db, savings.id)).name == "Savings"
    with pytest.raises(UnknownCategoryError):
        await category_service.get_category(db, 500)

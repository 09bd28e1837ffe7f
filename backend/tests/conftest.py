import pytest
import pytest_asyncio

from budgeting.database import build_engine, build_session_factory, init_db
from budgeting.models.category import CategoryType
from budgeting.schemas.common import GroupOwner, UserOwner
from budgeting.services.category_service import create_category
from budgeting.services.owner_service import create_group, create_user


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = build_engine(database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user_owner(db):
    user = await create_user(db, "alice", "alice@example.com")
    await db.commit()
    return UserOwner(id=user.id)


@pytest_asyncio.fixture
async def group_owner(db):
    group = await create_group(db, "Household")
    await db.commit()
    return GroupOwner(id=group.id)


@pytest_asyncio.fixture
async def categories(db):
    """One category per type, keyed by CategoryType."""
    created = {
        kind: await create_category(db, kind.value.title(), kind)
        for kind in CategoryType
    }
    await db.commit()
    return created

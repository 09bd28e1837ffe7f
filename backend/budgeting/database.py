import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from budgeting.config import settings

logger = logging.getLogger(__name__)


def build_engine(
    url: str,
    *,
    echo: bool = False,
    foreign_keys: bool = True,
) -> AsyncEngine:
    """Create an async engine.

    SQLite connections run in WAL mode with foreign key enforcement, and
    transactions are begun explicitly so SAVEPOINTs nest correctly.
    """
    is_sqlite = url.startswith("sqlite")
    engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _configure_sqlite(dbapi_connection, connection_record) -> None:
            # Stop the driver from issuing its own BEGIN/COMMIT
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            if foreign_keys:
                cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_sqlite(conn) -> None:
            conn.exec_driver_sql("BEGIN")

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    foreign_keys=settings.SQLITE_FOREIGN_KEYS,
)

async_session_factory = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session, committing on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


session_scope = asynccontextmanager(get_db)


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create all tables."""
    from budgeting.models import Base  # noqa: F401 - ensure models are registered

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialised (%s)", target.url.render_as_string(hide_password=True))

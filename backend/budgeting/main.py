import argparse
import asyncio
import logging

from budgeting.config import settings
from budgeting.database import async_session_factory, engine, init_db, session_scope
from budgeting.scheduler import GoalProgressScheduler
from budgeting.services.category_service import seed_default_categories

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )


async def _seed_categories() -> None:
    """Create default categories if none exist."""
    async with session_scope() as session:
        created = await seed_default_categories(session)
    if created:
        logger.info("Seeded %d default categories", created)


async def startup() -> None:
    if settings.DATABASE_URL.startswith("sqlite"):
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    await init_db()
    await _seed_categories()


async def run(recompute_now: bool = False) -> None:
    await startup()
    scheduler = GoalProgressScheduler(async_session_factory)
    try:
        if recompute_now:
            report = await scheduler.run_once()
            logger.info(
                "Recomputed %d goals (%d failed)",
                len(report.succeeded), len(report.failed),
            )
            return

        scheduler.start()
        # Run until cancelled (Ctrl+C)
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="budgeting-worker",
        description="Initialise the budgeting database and run the daily savings goal snapshot.",
    )
    parser.add_argument(
        "--recompute-now",
        action="store_true",
        help="recompute every savings goal once and exit",
    )
    args = parser.parse_args()

    configure_logging()
    try:
        asyncio.run(run(recompute_now=args.recompute_now))
    except KeyboardInterrupt:
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()

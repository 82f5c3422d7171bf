from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from pathlib import Path
import logging

from browser_viewer import config

logger = logging.getLogger(__name__)


def build_engine(database_url: str = config.DATABASE_URL, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite connections get WAL journaling and FK enforcement"""
    engine = create_async_engine(
        database_url,
        echo=config.SQL_ECHO,
        future=True,
        **kwargs
    )

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _ensure_sqlite_dir(engine: AsyncEngine) -> None:
    database = engine.url.database
    if engine.dialect.name == "sqlite" and database and database != ":memory:":
        Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


async def init_db(target: AsyncEngine):
    """Initialize database tables"""
    from browser_viewer.models.session import Base
    import browser_viewer.models.action  # noqa: F401  registers the actions table

    _ensure_sqlite_dir(target)
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"[Store] Schema ready at {target.url}")



from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from quill.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """
    Turn on foreign key enforcement for SQLite connections.

    SQLite ignores ON DELETE CASCADE unless the pragma is set per connection,
    so cascades would silently not happen in local and test databases.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine_from_url(url: str) -> AsyncEngine:
    engine = create_async_engine(url, pool_pre_ping=True)
    enable_sqlite_foreign_keys(engine)
    return engine


# Connection pool shared by the whole process
engine = create_engine_from_url(settings.DATABASE_URL)

# expire_on_commit=False: objects stay readable after commit without
# another round-trip (lazy loads are not allowed under asyncio)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Base class for all database models
Base = declarative_base()


async def get_db():
    """
    Dependency for getting database session.

    Each request gets its own session; it is closed when the request completes.
    Services commit explicitly and roll back on failure.
    """
    async with SessionLocal() as db:
        yield db


async def create_schema(bind: AsyncEngine = engine) -> None:
    """Create all tables for models registered on Base"""
    # Import models so they register with Base.metadata
    import quill.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

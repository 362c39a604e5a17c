from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from core.config import settings
from models.base import Base


def build_engine(url: str, **kwargs) -> AsyncEngine:
    if url.startswith("sqlite"):
        # SQLite (dev/tests): pool sizing does not apply, foreign keys are off by default
        engine = create_async_engine(url, echo=False, future=True, **kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # PostgreSQL driver for async operations is asyncpg
    return create_async_engine(
        url,
        echo=False, # Disable echo in prod for performance
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=20,       # Base connections
        max_overflow=10,    # Burst connections
        future=True,
        **kwargs,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = build_session_factory(engine)


async def init_models(bind: AsyncEngine = None):
    """Create tables directly (dev/tests). Production schema goes through alembic."""
    # Register every model on Base.metadata
    import models.user, models.quiz, models.attempt  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

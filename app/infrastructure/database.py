from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from app.core.config import settings
from app.db.base import Base
from app.domain.inventory.models import BatchRecord  # noqa: F401  (registers the table)


def build_engine(database_url: str) -> AsyncEngine:
    if "sqlite" in database_url.lower():
        return create_async_engine(database_url, echo=settings.DEBUG)

    return create_async_engine(
        database_url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.DEBUG
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        expire_on_commit=False,
        autoflush=False
    )


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = build_session_factory(engine)


async def init_db(bind: AsyncEngine = engine):
    """Initialize database tables"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(bind: AsyncEngine = engine):
    """Close database connections"""
    await bind.dispose()

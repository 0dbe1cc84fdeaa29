"""
Database engine and session management.

The ledger backend opens its own short-lived sessions from
async_session_factory; request handlers that only need a connection check
use get_session.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pocketbinder.config import settings
from pocketbinder.models.db import Base

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Used by the readiness probe:
        @router.get("/ready")
        async def ready(
            session: Annotated[AsyncSession, Depends(get_session)],
            store: Annotated[CatalogStore, Depends(get_catalog_store)],
        ): ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Create the user_cards table if it does not exist.

    Called from the app lifespan before the catalog is warmed.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pocketbinder.models.card import Catalog
from pocketbinder.models.db import Base
from pocketbinder.services.catalog_store import parse_catalog
from tests.factories import IMAGE_BASE, make_record


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """Small catalog spread over three sets, deliberately out of order."""
    return [
        make_record("A2", 3, "Pikachu"),
        make_record("A1", 2, "Ivysaur"),
        make_record("A1", 1, "Bulbasaur", packs=["Mewtwo", "Pikachu"]),
        make_record("A1", 94, "Pikachu ex", rarity="◊◊◊◊", rarity_code="RR"),
        make_record("A2", 1, "Oddish"),
        make_record("A1a", 1, "Exeggcute", packs=["Mew"]),
    ]


@pytest.fixture
def sample_catalog(sample_records: list[dict[str, Any]]) -> Catalog:
    return parse_catalog(sample_records, IMAGE_BASE, source="test")


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session

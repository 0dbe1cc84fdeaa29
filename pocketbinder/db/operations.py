"""
Database CRUD operations.

Provides async functions over user_cards rows: select by user, select one
by user and card, insert, update quantity by row id, and delete by user
and card. Callers own the session and the commit.
"""

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbinder.models.db import UserCardDB


async def get_user_cards(session: AsyncSession, user_id: str) -> list[UserCardDB]:
    """Get every ownership row for a user, newest first."""
    result = await session.execute(
        select(UserCardDB)
        .where(UserCardDB.user_id == user_id)
        .order_by(UserCardDB.created_at.desc(), UserCardDB.id.desc())
    )
    return list(result.scalars().all())


async def get_user_card(session: AsyncSession, user_id: str, card_key: str) -> UserCardDB | None:
    """
    Get one ownership row.

    Returns None if the user does not own the card.
    """
    result = await session.execute(
        select(UserCardDB).where(
            UserCardDB.user_id == user_id,
            UserCardDB.card_key == card_key,
        )
    )
    return result.scalar_one_or_none()


async def insert_user_card(
    session: AsyncSession, user_id: str, card_key: str, quantity: int
) -> UserCardDB:
    """
    Insert a new ownership row.

    Raises IntegrityError if the user already has a row for this card.
    """
    row = UserCardDB(user_id=user_id, card_key=card_key, quantity=quantity)
    session.add(row)
    await session.flush()
    # Load the server-assigned created_at
    await session.refresh(row)
    return row


async def set_card_quantity(session: AsyncSession, row_id: int, quantity: int) -> bool:
    """
    Overwrite the quantity of a row.

    Returns True if a row was updated, False if the id does not exist.
    """
    result = await session.execute(
        update(UserCardDB).where(UserCardDB.id == row_id).values(quantity=quantity)
    )
    # rowcount is available on UPDATE results; type stubs incomplete for async
    return int(result.rowcount) > 0  # type: ignore[attr-defined]


async def increment_card_quantity(session: AsyncSession, row_id: int, delta: int) -> bool:
    """
    Add delta to the quantity of a row.

    The increment is relative in SQL, so concurrent increments to the same
    row are applied by the database rather than from a client-side read.
    """
    result = await session.execute(
        update(UserCardDB)
        .where(UserCardDB.id == row_id)
        .values(quantity=UserCardDB.quantity + delta)
    )
    return int(result.rowcount) > 0  # type: ignore[attr-defined]


async def delete_user_card(session: AsyncSession, user_id: str, card_key: str) -> int:
    """
    Delete a user's row for a card.

    Returns the number of deleted records (0 or 1).
    """
    result = await session.execute(
        delete(UserCardDB).where(
            UserCardDB.user_id == user_id,
            UserCardDB.card_key == card_key,
        )
    )
    return int(result.rowcount)  # type: ignore[attr-defined]

"""
Remote ledger backend.

The ledger engine talks to its store through the LedgerBackend protocol:
a row store keyed by (user_id, card_key). SqlLedgerBackend implements it
on async SQLAlchemy, opening one session and one transaction per call so
every call is acknowledged (committed) before it returns.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pocketbinder.db.operations import (
    delete_user_card,
    get_user_card,
    get_user_cards,
    increment_card_quantity,
    insert_user_card,
    set_card_quantity,
)
from pocketbinder.models.collection import LedgerEntry
from pocketbinder.models.db import UserCardDB

logger = logging.getLogger(__name__)


class LedgerBackendError(Exception):
    """Raised when a backend call fails (network, database, constraint)."""

    pass


@dataclass(frozen=True, slots=True)
class LedgerRow:
    """A backend row as the ledger sees it."""

    id: int
    user_id: str
    card_key: str
    quantity: int
    created_at: datetime | None = None

    def to_entry(self) -> LedgerEntry:
        return LedgerEntry(
            card_key=self.card_key, quantity=self.quantity, acquired_at=self.created_at
        )


class LedgerBackend(Protocol):
    """
    Row operations the ledger needs from its store.

    Every method raises LedgerBackendError on failure.
    """

    async def select_all(self, user_id: str) -> list[LedgerRow]: ...

    async def select_one(self, user_id: str, card_key: str) -> LedgerRow | None: ...

    async def insert(self, user_id: str, card_key: str, quantity: int) -> LedgerRow: ...

    async def update_quantity(self, row_id: int, quantity: int) -> None: ...

    async def increment_quantity(self, row_id: int, delta: int) -> None: ...

    async def delete(self, user_id: str, card_key: str) -> None: ...


def _to_row(db_row: UserCardDB) -> LedgerRow:
    return LedgerRow(
        id=db_row.id,
        user_id=db_row.user_id,
        card_key=db_row.card_key,
        quantity=db_row.quantity,
        created_at=db_row.created_at,
    )


class SqlLedgerBackend:
    """LedgerBackend over the user_cards table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def select_all(self, user_id: str) -> list[LedgerRow]:
        try:
            async with self._session_factory() as session:
                rows = await get_user_cards(session, user_id)
                return [_to_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise LedgerBackendError(f"Failed to load cards for user {user_id}: {e}") from e

    async def select_one(self, user_id: str, card_key: str) -> LedgerRow | None:
        try:
            async with self._session_factory() as session:
                row = await get_user_card(session, user_id, card_key)
                return _to_row(row) if row else None
        except SQLAlchemyError as e:
            raise LedgerBackendError(f"Failed to load '{card_key}' for user {user_id}: {e}") from e

    async def insert(self, user_id: str, card_key: str, quantity: int) -> LedgerRow:
        try:
            async with self._session_factory() as session, session.begin():
                row = await insert_user_card(session, user_id, card_key, quantity)
                return _to_row(row)
        except SQLAlchemyError as e:
            msg = f"Failed to insert '{card_key}' for user {user_id}: {e}"
            raise LedgerBackendError(msg) from e

    async def update_quantity(self, row_id: int, quantity: int) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                updated = await set_card_quantity(session, row_id, quantity)
        except SQLAlchemyError as e:
            raise LedgerBackendError(f"Failed to update row {row_id}: {e}") from e
        if not updated:
            raise LedgerBackendError(f"Row {row_id} no longer exists")

    async def increment_quantity(self, row_id: int, delta: int) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                updated = await increment_card_quantity(session, row_id, delta)
        except SQLAlchemyError as e:
            raise LedgerBackendError(f"Failed to increment row {row_id}: {e}") from e
        if not updated:
            raise LedgerBackendError(f"Row {row_id} no longer exists")

    async def delete(self, user_id: str, card_key: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                deleted = await delete_user_card(session, user_id, card_key)
        except SQLAlchemyError as e:
            msg = f"Failed to delete '{card_key}' for user {user_id}: {e}"
            raise LedgerBackendError(msg) from e
        logger.debug("Deleted %d row(s) for %s/%s", deleted, user_id, card_key)

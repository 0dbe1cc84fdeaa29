"""
Shared FastAPI dependencies.

The signed-in user arrives in the X-User-Id header; authentication itself
happens upstream. A missing header is an anonymous session.
"""

from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pocketbinder.db.database import async_session_factory
from pocketbinder.services.catalog_store import CatalogStore, default_catalog_store
from pocketbinder.services.collection_ledger import CollectionLedger
from pocketbinder.services.ledger_backend import SqlLedgerBackend
from pocketbinder.services.session import StaticSession


def get_catalog_store(request: Request) -> CatalogStore:
    """The process-wide catalog store, created on first use."""
    store: CatalogStore | None = getattr(request.app.state, "catalog_store", None)
    if store is None:
        store = default_catalog_store()
        request.app.state.catalog_store = store
    return store


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


def get_user_session(
    x_user_id: Annotated[str | None, Header()] = None,
) -> StaticSession:
    return StaticSession(x_user_id.strip() if x_user_id else None)


def get_ledger(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    user_session: Annotated[StaticSession, Depends(get_user_session)],
) -> CollectionLedger:
    """A ledger scoped to this request's user."""
    return CollectionLedger(SqlLedgerBackend(session_factory), user_session)

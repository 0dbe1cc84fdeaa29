"""
Collection API endpoints.

Reads and writes the caller's ledger. Every write is confirmed by the
backend and followed by a full refetch; the response carries the
refetched ledger.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from pocketbinder.api.catalog import CardResponse
from pocketbinder.api.deps import get_catalog_store, get_ledger
from pocketbinder.models.card import Catalog
from pocketbinder.models.collection import LedgerSnapshot
from pocketbinder.models.failure import CatalogUnavailableError, MutationRejectedError
from pocketbinder.services.catalog_store import CatalogStore
from pocketbinder.services.collection_ledger import CollectionLedger

router = APIRouter(prefix="/collection", tags=["collection"])


class LedgerEntryResponse(BaseModel):
    """One owned card. card is None when the key no longer resolves in the catalog."""

    card_key: str
    quantity: int
    acquired_at: datetime | None = None
    card: CardResponse | None = None


class CollectionResponse(BaseModel):
    """Response model for a user's ledger."""

    user_id: str | None
    entries: list[LedgerEntryResponse] = Field(default_factory=list)
    total_cards: int = Field(default=0, description="Distinct cards owned")
    total_quantity: int = Field(default=0, description="Copies owned across all cards")


class AddCardRequest(BaseModel):
    """Request model for adding copies of a card."""

    quantity: int = Field(default=1, ge=1, description="Copies to add")


class SetQuantityRequest(BaseModel):
    """Request model for overwriting a card's quantity."""

    quantity: int = Field(
        ...,
        ge=0,
        description="New quantity. 0 removes the card from the collection.",
    )


def _to_response(snapshot: LedgerSnapshot, catalog: Catalog | None) -> CollectionResponse:
    stats = snapshot.stats()
    entries = []
    for entry in snapshot.entries:
        card = catalog.get(entry.card_key) if catalog else None
        entries.append(
            LedgerEntryResponse(
                card_key=entry.card_key,
                quantity=entry.quantity,
                acquired_at=entry.acquired_at,
                card=CardResponse.from_card(card, entry.quantity) if card else None,
            )
        )
    return CollectionResponse(
        user_id=snapshot.user_id,
        entries=entries,
        total_cards=stats.total_cards,
        total_quantity=stats.total_quantity,
    )


async def _optional_catalog(store: CatalogStore) -> Catalog | None:
    # Ledger reads still work when the catalog is down; entries just lack card details
    try:
        return await store.load()
    except CatalogUnavailableError:
        return None


async def _require_card(store: CatalogStore, card_key: str) -> Catalog:
    catalog = await store.load()
    if card_key not in catalog:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_key}' is not in the catalog",
        )
    return catalog


def _rejected(ledger: CollectionLedger, card_key: str) -> MutationRejectedError:
    if ledger.session.current_user_id() is None:
        return MutationRejectedError(card_key, "Sign in to change your collection", signed_in=False)
    return MutationRejectedError(card_key, "The collection backend rejected the change")


@router.get("", response_model=CollectionResponse)
async def get_user_collection(
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CollectionResponse:
    """
    Get the caller's collection.

    Anonymous callers get an empty collection. Entries whose card left the
    catalog are still listed, without card details.
    """
    snapshot = await ledger.refresh()
    return _to_response(snapshot, await _optional_catalog(store))


@router.post("/{card_key}", response_model=CollectionResponse)
async def add_card(
    card_key: str,
    request: AddCardRequest,
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CollectionResponse:
    """Add copies of a catalog card to the caller's collection."""
    catalog = await _require_card(store, card_key)
    if not await ledger.add(card_key, request.quantity):
        raise _rejected(ledger, card_key)
    return _to_response(ledger.snapshot, catalog)


@router.put("/{card_key}", response_model=CollectionResponse)
async def set_card_quantity(
    card_key: str,
    request: SetQuantityRequest,
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CollectionResponse:
    """Overwrite the quantity of a card. Quantity 0 removes it."""
    catalog = await _require_card(store, card_key)
    if not await ledger.set_quantity(card_key, request.quantity):
        raise _rejected(ledger, card_key)
    return _to_response(ledger.snapshot, catalog)


@router.delete("/{card_key}", response_model=CollectionResponse)
async def remove_card(
    card_key: str,
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CollectionResponse:
    """
    Remove a card from the caller's collection, whatever its quantity.

    Works for cards that are no longer in the catalog.
    """
    if not await ledger.remove(card_key):
        raise _rejected(ledger, card_key)
    return _to_response(ledger.snapshot, await _optional_catalog(store))


@router.post("/{card_key}/toggle", response_model=CollectionResponse)
async def toggle_card(
    card_key: str,
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CollectionResponse:
    """Remove the card if owned, otherwise add one copy."""
    catalog = await _require_card(store, card_key)
    await ledger.refresh()
    if not await ledger.toggle(card_key):
        raise _rejected(ledger, card_key)
    return _to_response(ledger.snapshot, catalog)


@router.post("/{card_key}/decrement", response_model=CollectionResponse)
async def decrement_card(
    card_key: str,
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CollectionResponse:
    """Drop one copy of a card. The last copy removes it."""
    await ledger.refresh()
    if ledger.session.current_user_id() is None:
        raise _rejected(ledger, card_key)
    if not ledger.contains(card_key):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_key}' is not in your collection",
        )
    if not await ledger.decrement(card_key):
        raise _rejected(ledger, card_key)
    return _to_response(ledger.snapshot, await _optional_catalog(store))

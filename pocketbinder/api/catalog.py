"""
Catalog API endpoints.

Read-only access to the card catalog and projected views of it.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from pocketbinder.api.deps import get_catalog_store, get_ledger
from pocketbinder.models.card import CardDefinition
from pocketbinder.models.view import OwnershipMode, ViewCriteria
from pocketbinder.services.catalog_store import CatalogStore
from pocketbinder.services.collection_ledger import CollectionLedger
from pocketbinder.services.view_projector import project

router = APIRouter(prefix="/catalog", tags=["catalog"])


class CardResponse(BaseModel):
    """A catalog card with the caller's owned quantity."""

    card_key: str
    set: str
    number: int
    name: str
    rarity: str
    rarity_code: str
    image_url: str
    packs: list[str] = Field(default_factory=list)
    quantity: int = Field(default=0, description="Copies owned by the caller")

    @classmethod
    def from_card(cls, card: CardDefinition, quantity: int = 0) -> "CardResponse":
        return cls(
            card_key=card.card_key,
            set=card.set,
            number=card.number,
            name=card.display_name,
            rarity=card.rarity,
            rarity_code=card.rarity_code,
            image_url=card.image_url,
            packs=sorted(card.packs),
            quantity=quantity,
        )


class SetGroupResponse(BaseModel):
    set_name: str
    cards: list[CardResponse] = Field(default_factory=list)


class ViewResponse(BaseModel):
    """Response model for a projected catalog view."""

    groups: list[SetGroupResponse] = Field(default_factory=list)
    total_cards: int = 0
    catalog_source: str = Field(
        default="unknown",
        description="Where the catalog was loaded from (file path or URL)",
    )


class ExpansionsResponse(BaseModel):
    expansions: list[str] = Field(default_factory=list)
    total_cards: int = 0
    catalog_source: str = "unknown"


@router.get("/expansions", response_model=ExpansionsResponse)
async def list_expansions(
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
) -> ExpansionsResponse:
    """List every set in the catalog, sorted."""
    catalog = await store.load()
    return ExpansionsResponse(
        expansions=catalog.expansions(),
        total_cards=len(catalog),
        catalog_source=catalog.source,
    )


@router.get("/view", response_model=ViewResponse)
async def view_catalog(
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
    search: Annotated[str, Query(max_length=100)] = "",
    expansion: str | None = None,
    mode: OwnershipMode = OwnershipMode.ALL,
) -> ViewResponse:
    """
    Get the catalog grouped by set.

    Filters apply in order: search term, expansion, ownership mode.
    Anonymous callers own nothing, so mode=owned returns no groups.
    """
    catalog = await store.load()
    snapshot = await ledger.refresh()

    view = project(
        catalog,
        ViewCriteria(search_term=search, expansion=expansion or None, ownership_mode=mode),
        snapshot.owned_keys(),
    )

    return ViewResponse(
        groups=[
            SetGroupResponse(
                set_name=group.set_name,
                cards=[
                    CardResponse.from_card(card, snapshot.quantity_of(card.card_key))
                    for card in group.cards
                ],
            )
            for group in view.groups
        ],
        total_cards=len(view),
        catalog_source=catalog.source,
    )


@router.get("/cards/{card_key}", response_model=CardResponse)
async def get_card(
    card_key: str,
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
    ledger: Annotated[CollectionLedger, Depends(get_ledger)],
) -> CardResponse:
    """Get one card by key, with the caller's owned quantity."""
    catalog = await store.load()
    card = catalog.get(card_key)
    if card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_key}' is not in the catalog",
        )

    snapshot = await ledger.refresh()
    return CardResponse.from_card(card, snapshot.quantity_of(card_key))

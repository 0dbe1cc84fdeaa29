"""
Catalog projection.

Turns the catalog plus the user's filters into a grouped, ordered view.
Pure functions only: no I/O, no shared state, a fresh view every call.

Filters apply in a fixed order: search, expansion, ownership. Surviving
cards are grouped by set; groups sort by set name and cards by number.
"""

from collections.abc import Iterable, Set

from pocketbinder.models.card import CardDefinition, Catalog
from pocketbinder.models.view import (
    CollectionView,
    OwnershipMode,
    SetGroup,
    ViewCriteria,
)


def matches_search(card: CardDefinition, term: str) -> bool:
    """Check if display name, set id, or English label contains the term."""
    needle = term.strip().casefold()
    if not needle:
        return True
    return (
        needle in card.display_name.casefold()
        or needle in card.set.casefold()
        or needle in card.label.eng.casefold()
    )


def search_cards(catalog: Catalog, term: str) -> list[CardDefinition]:
    """Cards matching a search term, in catalog order."""
    return [card for card in catalog if matches_search(card, term)]


def cards_in_expansion(catalog: Catalog, set_id: str) -> list[CardDefinition]:
    """Cards of exactly one set, in catalog order."""
    return [card for card in catalog if card.set == set_id]


def group_by_set(cards: Iterable[CardDefinition]) -> CollectionView:
    """Partition cards by set and order groups and cards."""
    by_set: dict[str, list[CardDefinition]] = {}
    for card in cards:
        by_set.setdefault(card.set, []).append(card)

    # Plain str ordering compares code points, independent of locale
    groups = tuple(
        SetGroup(
            set_name=set_name,
            cards=tuple(sorted(by_set[set_name], key=lambda c: c.number)),
        )
        for set_name in sorted(by_set)
    )
    return CollectionView(groups=groups)


def project(
    catalog: Iterable[CardDefinition],
    criteria: ViewCriteria,
    owned_keys: Set[str] = frozenset(),
) -> CollectionView:
    """
    Build the view for a set of filters.

    Args:
        catalog: Every card to consider
        criteria: Search term, expansion, and ownership mode
        owned_keys: Card keys present in the user's ledger

    Returns:
        Set groups ascending by set name, cards ascending by number.
        Identical inputs always give equal views.
    """
    cards: Iterable[CardDefinition] = catalog

    term = criteria.search_term.strip()
    if term:
        cards = [card for card in cards if matches_search(card, term)]

    if criteria.expansion:
        cards = [card for card in cards if card.set == criteria.expansion]

    if criteria.ownership_mode is OwnershipMode.OWNED:
        cards = [card for card in cards if card.card_key in owned_keys]

    return group_by_set(cards)

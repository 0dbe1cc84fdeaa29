from dataclasses import dataclass
from enum import Enum

from pocketbinder.models.card import CardDefinition


class OwnershipMode(str, Enum):
    """Which cards a projection shows relative to the ledger."""

    ALL = "all"
    OWNED = "owned"


@dataclass(frozen=True, slots=True)
class ViewCriteria:
    """
    User-controlled filters for a catalog projection.

    Attributes:
        search_term: Case-insensitive substring; blank means no search
        expansion: Exact set identifier, or None for every set
        ownership_mode: ALL, or OWNED to keep only cards in the ledger
    """

    search_term: str = ""
    expansion: str | None = None
    ownership_mode: OwnershipMode = OwnershipMode.ALL


@dataclass(frozen=True, slots=True)
class SetGroup:
    """Cards from one set, ascending by number."""

    set_name: str
    cards: tuple[CardDefinition, ...]


@dataclass(frozen=True, slots=True)
class CollectionView:
    """A projected catalog view: set groups ascending by set name."""

    groups: tuple[SetGroup, ...] = ()

    def cards(self) -> list[CardDefinition]:
        """Every card in the view, in display order."""
        return [card for group in self.groups for card in group.cards]

    def card_keys(self) -> list[str]:
        return [card.card_key for card in self.cards()]

    def __len__(self) -> int:
        return sum(len(group.cards) for group in self.groups)

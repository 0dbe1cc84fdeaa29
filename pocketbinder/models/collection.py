from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """
    One user's ownership of one card.

    Attributes:
        card_key: Catalog join key. May not resolve if the card left the catalog.
        quantity: Copies owned, always >= 1
        acquired_at: Set by the backend on first insert, never changed by updates
    """

    card_key: str
    quantity: int
    acquired_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class CollectionStats:
    """Summary counts for a ledger snapshot."""

    total_cards: int = 0
    total_quantity: int = 0


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    A complete, immutable view of a user's ledger at one point in time.

    Snapshots are replaced wholesale on refresh. Nothing mutates one after
    it has been published.
    """

    user_id: str | None = None
    entries: tuple[LedgerEntry, ...] = ()
    _by_key: Mapping[str, LedgerEntry] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        by_key: dict[str, LedgerEntry] = {}
        for entry in self.entries:
            if entry.quantity < 1:
                raise ValueError(
                    f"Ledger entry for '{entry.card_key}' has quantity {entry.quantity}"
                )
            by_key[entry.card_key] = entry
        object.__setattr__(self, "_by_key", MappingProxyType(by_key))

    def contains(self, card_key: str) -> bool:
        """Check if the snapshot has an entry for the card."""
        return card_key in self._by_key

    def quantity_of(self, card_key: str) -> int:
        """Copies owned of a card, 0 if absent."""
        entry = self._by_key.get(card_key)
        return entry.quantity if entry else 0

    def get(self, card_key: str) -> LedgerEntry | None:
        return self._by_key.get(card_key)

    def owned_keys(self) -> frozenset[str]:
        """Keys of every owned card."""
        return frozenset(self._by_key)

    def stats(self) -> CollectionStats:
        return CollectionStats(
            total_cards=len(self.entries),
            total_quantity=sum(entry.quantity for entry in self.entries),
        )

    def __len__(self) -> int:
        return len(self.entries)


EMPTY_SNAPSHOT = LedgerSnapshot()

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class CardLabel:
    """Localized names for a card. Only the English name is guaranteed."""

    slug: str
    eng: str


@dataclass(frozen=True, slots=True)
class CardDefinition:
    """
    An immutable catalog entry, enriched at load time.

    Attributes:
        set: Set identifier (e.g., "A1", "A2a")
        number: Position within the set, unique per set
        rarity: Rarity symbol as printed in the catalog
        rarity_code: Short rarity code (e.g., "C", "RR")
        image_name: File name of the card art
        label: Localized display names
        packs: Booster packs the card can be pulled from
        card_key: "<set>-<number>", unique across the catalog
        image_url: image_name resolved against the image base location
    """

    set: str
    number: int
    rarity: str
    rarity_code: str
    image_name: str
    label: CardLabel
    packs: frozenset[str]
    card_key: str
    image_url: str

    @property
    def display_name(self) -> str:
        """English label, or the slug when the English name is blank."""
        return self.label.eng.strip() or self.label.slug


def make_card_key(set_id: str, number: int) -> str:
    """Build the join key shared by the catalog and the ledger."""
    return f"{set_id}-{number}"


@dataclass(frozen=True)
class Catalog:
    """
    The full, immutable card catalog for one process.

    Cards keep source order. Lookups go through an index keyed by card_key.
    """

    cards: tuple[CardDefinition, ...]
    source: str = "unknown"
    _index: Mapping[str, CardDefinition] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        index: dict[str, CardDefinition] = {}
        for card in self.cards:
            if card.card_key in index:
                raise ValueError(f"Duplicate card key in catalog: {card.card_key}")
            index[card.card_key] = card
        object.__setattr__(self, "_index", MappingProxyType(index))

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[CardDefinition]:
        return iter(self.cards)

    def __contains__(self, card_key: object) -> bool:
        return card_key in self._index

    def get(self, card_key: str) -> CardDefinition | None:
        """Look up a card by key. Returns None if the catalog has no such card."""
        return self._index.get(card_key)

    def expansions(self) -> list[str]:
        """Distinct set identifiers, sorted ascending."""
        return sorted({card.set for card in self.cards})

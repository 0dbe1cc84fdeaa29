from pocketbinder.models.card import CardDefinition, CardLabel, Catalog, make_card_key
from pocketbinder.models.collection import (
    EMPTY_SNAPSHOT,
    CollectionStats,
    LedgerEntry,
    LedgerSnapshot,
)
from pocketbinder.models.failure import (
    CatalogUnavailableError,
    FailureDetail,
    FailureKind,
    KnownError,
    LedgerUnavailableError,
    MutationRejectedError,
)
from pocketbinder.models.view import CollectionView, OwnershipMode, SetGroup, ViewCriteria

__all__ = [
    "CardDefinition",
    "CardLabel",
    "Catalog",
    "CatalogUnavailableError",
    "CollectionStats",
    "CollectionView",
    "EMPTY_SNAPSHOT",
    "FailureDetail",
    "FailureKind",
    "KnownError",
    "LedgerEntry",
    "LedgerSnapshot",
    "LedgerUnavailableError",
    "MutationRejectedError",
    "OwnershipMode",
    "SetGroup",
    "ViewCriteria",
    "make_card_key",
]

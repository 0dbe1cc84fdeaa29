"""
PocketBinder services.

Catalog caching, view projection, and collection ledger synchronization.
"""

from pocketbinder.services.catalog_store import (
    CatalogRecord,
    CatalogSource,
    CatalogStore,
    FileCatalogSource,
    HttpCatalogSource,
    default_catalog_store,
    parse_catalog,
)
from pocketbinder.services.collection_ledger import CollectionLedger
from pocketbinder.services.ledger_backend import (
    LedgerBackend,
    LedgerBackendError,
    LedgerRow,
    SqlLedgerBackend,
)
from pocketbinder.services.session import SessionProvider, StaticSession
from pocketbinder.services.view_projector import (
    cards_in_expansion,
    group_by_set,
    matches_search,
    project,
    search_cards,
)

__all__ = [
    "CatalogRecord",
    "CatalogSource",
    "CatalogStore",
    "CollectionLedger",
    "FileCatalogSource",
    "HttpCatalogSource",
    "LedgerBackend",
    "LedgerBackendError",
    "LedgerRow",
    "SessionProvider",
    "SqlLedgerBackend",
    "StaticSession",
    "cards_in_expansion",
    "default_catalog_store",
    "group_by_set",
    "matches_search",
    "parse_catalog",
    "project",
    "search_cards",
]

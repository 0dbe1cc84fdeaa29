from pocketbinder.api.catalog import router as catalog_router
from pocketbinder.api.collection import router as collection_router
from pocketbinder.api.health import router as health_router

__all__ = [
    "catalog_router",
    "collection_router",
    "health_router",
]

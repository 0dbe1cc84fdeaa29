import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pocketbinder.api import catalog_router, collection_router, health_router
from pocketbinder.config import settings
from pocketbinder.db.database import init_db
from pocketbinder.models.failure import CatalogUnavailableError, KnownError
from pocketbinder.services.catalog_store import default_catalog_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    app.state.catalog_store = default_catalog_store()
    try:
        await app.state.catalog_store.load()
    except CatalogUnavailableError:
        # Requests retry the load; a missing catalog is not fatal at startup
        logger.warning("Catalog not available at startup")
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("pocketbinder"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_detail().model_dump(mode="json"),
    )


app.include_router(catalog_router)
app.include_router(collection_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

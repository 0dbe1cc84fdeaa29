"""
Health check endpoints.

Provides liveness and readiness probes with database and catalog checks.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbinder.api.deps import get_catalog_store
from pocketbinder.db.database import get_session
from pocketbinder.services.catalog_store import CatalogStore

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    catalog: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Liveness probe.

    Returns healthy if the service is running.
    Does not check dependencies.
    """
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[CatalogStore, Depends(get_catalog_store)],
) -> HealthResponse:
    """
    Readiness probe.

    Checks database connectivity and whether the catalog has been loaded.
    Returns 503 if the database is unavailable. A catalog that is not
    loaded yet is reported but does not fail the probe.
    """
    catalog_state = "loaded" if store.is_loaded else "not loaded"
    try:
        await session.execute(text("SELECT 1"))
        return HealthResponse(status="ready", database="connected", catalog=catalog_state)
    except Exception:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="disconnected", catalog=catalog_state)

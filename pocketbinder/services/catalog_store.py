"""
Catalog store.

Loads the card catalog once per process and keeps the enriched result in
memory. A failed load leaves nothing cached, so the next call fetches again.

Sources are static JSON documents, read from disk or over HTTP. The payload
must be a list of card records; any bad record fails the whole load.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field, StrictInt, StrictStr, TypeAdapter, ValidationError

from pocketbinder.config import settings
from pocketbinder.models.card import CardDefinition, CardLabel, Catalog, make_card_key
from pocketbinder.models.failure import CatalogUnavailableError

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """Where the raw catalog document comes from."""

    async def fetch(self) -> Any: ...

    def describe(self) -> str: ...


class FileCatalogSource:
    """A catalog document on the local filesystem."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def fetch(self) -> Any:
        if not self.path.exists():
            raise CatalogUnavailableError(
                f"Catalog not found at {self.path}. "
                "Run `python -m pocketbinder.jobs.download_catalog` first."
            )
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            return json.loads(text)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CatalogUnavailableError(f"Catalog at {self.path} is unreadable: {e}") from e

    def describe(self) -> str:
        return f"file:{self.path}"


class HttpCatalogSource:
    """A catalog document served over HTTP."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client

    async def fetch(self) -> Any:
        try:
            if self._client:
                response = await self._client.get(self.url)
                response.raise_for_status()
                return response.json()
            async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogUnavailableError(
                f"Catalog request to {self.url} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise CatalogUnavailableError(f"Catalog request to {self.url} failed: {e}") from e
        except ValueError as e:
            raise CatalogUnavailableError(f"Catalog at {self.url} is not valid JSON") from e

    def describe(self) -> str:
        return self.url


# --- Raw record schema ---


class _RawLabel(BaseModel):
    slug: StrictStr
    eng: StrictStr


class CatalogRecord(BaseModel):
    """One card record exactly as the catalog document ships it."""

    set: StrictStr
    number: StrictInt = Field(ge=1)
    rarity: StrictStr
    rarity_code: StrictStr = Field(alias="rarityCode")
    image_name: StrictStr = Field(alias="imageName")
    label: _RawLabel
    packs: list[StrictStr]


_RECORDS = TypeAdapter(list[CatalogRecord])


def build_card(record: CatalogRecord, image_base_url: str) -> CardDefinition:
    """Enrich a raw record with its key, image URL and label."""
    return CardDefinition(
        set=record.set,
        number=record.number,
        rarity=record.rarity,
        rarity_code=record.rarity_code,
        image_name=record.image_name,
        label=CardLabel(slug=record.label.slug, eng=record.label.eng),
        packs=frozenset(record.packs),
        card_key=make_card_key(record.set, record.number),
        image_url=f"{image_base_url}{record.image_name}",
    )


def parse_catalog(payload: Any, image_base_url: str, source: str = "unknown") -> Catalog:
    """
    Parse a raw catalog payload into an enriched Catalog.

    Raises:
        CatalogUnavailableError: If the payload is not a list of valid card
            records, or two records share a card key
    """
    if not isinstance(payload, list):
        raise CatalogUnavailableError(
            f"Catalog payload must be a list of cards, got {type(payload).__name__}"
        )

    try:
        records = _RECORDS.validate_python(payload)
    except ValidationError as e:
        raise CatalogUnavailableError(
            f"Catalog has {e.error_count()} invalid field(s): {e.errors()[0]['loc']}"
        ) from e

    cards = tuple(build_card(record, image_base_url) for record in records)
    try:
        return Catalog(cards=cards, source=source)
    except ValueError as e:
        raise CatalogUnavailableError(str(e)) from e


class CatalogStore:
    """
    Process-wide catalog cache.

    Construct one per process. load() fetches on first use and memoizes;
    invalidate() drops the memo so the next load() fetches again.
    """

    def __init__(self, source: CatalogSource, image_base_url: str | None = None) -> None:
        self.source = source
        if image_base_url is None:
            image_base_url = settings.image_base_url
        self.image_base_url = image_base_url
        self._catalog: Catalog | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._catalog is not None

    async def load(self) -> Catalog:
        """
        Get the catalog, fetching it on first call.

        Raises:
            CatalogUnavailableError: If the fetch fails or the payload is
                malformed. Nothing is cached in that case.
        """
        if self._catalog is not None:
            return self._catalog

        async with self._lock:
            # Another caller may have finished loading while we waited
            if self._catalog is not None:
                return self._catalog

            source = self.source.describe()
            try:
                payload = await self.source.fetch()
                catalog = parse_catalog(payload, self.image_base_url, source=source)
            except CatalogUnavailableError as e:
                logger.error("Failed to load catalog from %s: %s", source, e.detail)
                raise

            logger.info("Loaded %d cards from %s", len(catalog), source)
            self._catalog = catalog
            return catalog

    def expansions(self) -> list[str]:
        """Distinct set identifiers of the loaded catalog. Empty before a load."""
        if self._catalog is None:
            return []
        return self._catalog.expansions()

    def get(self, card_key: str) -> CardDefinition | None:
        """Look up a card in the loaded catalog. None before a load."""
        if self._catalog is None:
            return None
        return self._catalog.get(card_key)

    def invalidate(self) -> None:
        """Forget the cached catalog."""
        self._catalog = None


def default_catalog_store() -> CatalogStore:
    """Build a store for the configured catalog location."""
    if settings.catalog_url:
        return CatalogStore(HttpCatalogSource(settings.catalog_url))
    return CatalogStore(FileCatalogSource(settings.catalog_path))

"""
Download the card catalog.

Run this job to fetch the latest catalog document into the configured
catalog path. The download is validated before it replaces the old file.
"""

import asyncio
import json
import logging
from pathlib import Path

import httpx

from pocketbinder.config import settings
from pocketbinder.services.catalog_store import parse_catalog

logger = logging.getLogger(__name__)


async def download_catalog(url: str | None = None, output_path: Path | None = None) -> Path:
    """
    Download the catalog document and save it.

    Args:
        url: Where to fetch from. Defaults to settings.catalog_download_url
        output_path: Where to save the file. Defaults to settings.catalog_path

    Returns:
        Path to the saved file.

    Raises:
        httpx.HTTPError: If the download fails
        CatalogUnavailableError: If the document is not a valid catalog
    """
    url = url or settings.catalog_download_url
    output_path = output_path or settings.catalog_path

    async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as client:
        response = await client.get(url)
        response.raise_for_status()
        payload = response.json()

    # Refuse to overwrite a good catalog with a bad one
    catalog = parse_catalog(payload, settings.image_base_url, source=url)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output_path.with_suffix(".tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    tmp_path.replace(output_path)

    logger.info("Saved %d cards in %d sets", len(catalog), len(catalog.expansions()))
    return output_path


async def run_download() -> None:
    """Download the catalog document."""
    logger.info("Downloading card catalog...")

    try:
        path = await download_catalog()
        logger.info("Downloaded card catalog to %s", path)
    except Exception as e:
        logger.error("Failed to download card catalog: %s", e)
        raise


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_download())


if __name__ == "__main__":
    main()

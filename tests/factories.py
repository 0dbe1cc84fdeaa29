"""Builders for raw catalog records used across the test suite."""

from typing import Any

IMAGE_BASE = "https://images.test/cards/"


def make_record(
    set_id: str,
    number: int,
    name: str,
    rarity: str = "◊",
    rarity_code: str = "C",
    packs: list[str] | None = None,
) -> dict[str, Any]:
    """Build a raw catalog record shaped like the published document."""
    return {
        "set": set_id,
        "number": number,
        "rarity": rarity,
        "rarityCode": rarity_code,
        "imageName": f"{set_id}_{number:03d}.webp",
        "label": {"slug": name.lower().replace(" ", "-"), "eng": name},
        "packs": packs if packs is not None else ["Pikachu"],
    }


class MemoryCatalogSource:
    """Catalog source serving a fixed payload, or raising a fixed error."""

    def __init__(self, payload: Any = None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls = 0

    async def fetch(self) -> Any:
        self.calls += 1
        if self.error:
            raise self.error
        return self.payload

    def describe(self) -> str:
        return "memory"

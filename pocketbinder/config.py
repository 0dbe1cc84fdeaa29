from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "PocketBinder"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/pocketbinder"

    # Catalog document. When catalog_url is set it wins over catalog_path.
    catalog_path: Path = DATA_DIR / "cards.json"
    catalog_url: str | None = None

    catalog_download_url: str = (
        "https://raw.githubusercontent.com/flibustier/"
        "pokemon-tcg-pocket-database/main/dist/cards.json"
    )

    image_base_url: str = (
        "https://raw.githubusercontent.com/flibustier/"
        "pokemon-tcg-exchange/main/public/images/cards/"
    )


settings = Settings()

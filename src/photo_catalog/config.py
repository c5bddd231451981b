from pathlib import Path
from typing import Annotated, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PHOTO_CATALOG_", env_file=".env", extra="ignore")

    APP_NAME: str = "photo-catalog"
    VERSION: str = "0.1.0"
    # Folder holding the photo collection. Album paths are relative to it.
    DATA_ROOT: Path = Path("data")
    # SQLite database file. Leave unset to keep the catalog in memory.
    DB_PATH: Optional[Path] = None
    MEDIA_EXTENSIONS: Annotated[tuple[str, ...], NoDecode] = (".jpg", ".jpeg", ".png")

    # Sync jobs
    MAX_RUNNING_JOBS: int = 2
    JOB_KEEP_PERIOD: int = 3600  # seconds
    JOB_HISTORY_LIMIT: int = 20

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("MEDIA_EXTENSIONS", mode="before")
    @classmethod
    def _split_extensions(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return tuple(
            ext if ext.startswith(".") else f".{ext}"
            for ext in (str(item).strip().lower() for item in value)
            if ext
        )

    @field_validator("LOG_FORMAT")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        fmt = value.strip().lower()
        if fmt not in {"json", "text"}:
            raise ValueError("LOG_FORMAT must be 'json' or 'text'.")
        return fmt


def get_settings() -> Settings:
    return Settings()


settings = get_settings()

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000"
    # None disables the client timeout, a hung request keeps its query loading
    REQUEST_TIMEOUT: Optional[float] = None
    STATE_FILE: Path = Path.home() / ".localization_console" / "state.json"
    UPDATED_BY: str = "console_user"

    LIST_RETRY: int = 1
    RETRY_DELAY: float = 1.0
    STATS_STALE_TIME: float = 30.0
    PAGE_SIZE: int = 24

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()

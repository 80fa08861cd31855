from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    A .env file is read as fallback; real environment variables win.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # SQLite file holding the messages table (relative paths resolve from cwd)
    DATABASE_FILE: str = "messages.sqlite"

    LOG_LEVEL: str = "INFO"

    # Tag stored with submissions that do not carry their own
    DEFAULT_TAG: str = ""


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()

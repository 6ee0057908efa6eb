# meetslot/core/config.py
from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.

    These settings drive:
    - the time convention used for working-hour checks
    - Graph API client credentials for calendar ingestion
    - the optional Gemini re-ranking collaborator
    - logging verbosity
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "MeetSlot"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root level for the meetslot logger.")

    DEFAULT_TIMEZONE: str = Field(
        "UTC",
        description=(
            "IANA timezone used for weekday / hour-of-day checks when a "
            "participant does not declare one."
        ),
    )

    GRAPH_TENANT_ID: str | None = None
    GRAPH_CLIENT_ID: str | None = None
    GRAPH_CLIENT_SECRET: str | None = None
    GRAPH_BASE_URL: AnyHttpUrl | None = None

    GEMINI_API_KEY: str | None = Field(
        default=None,
        description="API key for the Gemini re-ranker. When unset, only the algorithmic ranking is used.",
    )
    GEMINI_MODEL: str = Field(
        default="gemini-1.5-flash",
        description="Model name used for generateContent calls.",
    )
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the Generative Language API.",
    )
    GEMINI_TIMEOUT_SECONDS: float = Field(
        default=20.0,
        description="HTTP timeout applied to each re-ranking request.",
    )

    RERANK_TOP_N: int = Field(
        default=10,
        description="Number of ranked candidates serialized for the re-ranker.",
    )
    RECOMMENDATION_COUNT: int = Field(
        default=3,
        description="Number of recommendations returned to the caller.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Settings are read and validated only once per process.
    """
    return Settings()

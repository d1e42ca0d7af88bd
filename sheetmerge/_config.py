import logging
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    ENVIRONMENT: str
    LOGGING_LEVEL: int = logging.INFO

    # Optional API key guarding the session routes
    API_KEY: str | None = None

    # Table preview and upload limits
    MAX_PREVIEW_ROWS: int = 100
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024

    # Sessions idle for longer than this are evicted
    SESSION_TTL_SECONDS: int = 3600

    # Export configuration
    EXPORT_SHEET_NAME: str = "Merged Data"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file_encoding="utf-8",
    )


environment = os.environ.get("ENVIRONMENT", "local")
config = Config(
    ENVIRONMENT=environment,
    # ".env.{environment}" takes priority over ".env"
    _env_file=[".env", f".env.{environment}"],
)

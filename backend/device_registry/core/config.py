from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./devices.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    # page size used when streaming list_by_node results
    LIST_BATCH_SIZE: int = Field(default=100, ge=1)
    # reject a second device on an occupied (node_id, endpoint_id) pair
    ENFORCE_ENDPOINT_UNIQUE: bool = False

    model_config = SettingsConfigDict(
        env_file=[
            Path(__file__).resolve().parents[2] / ".env",
            Path(".env"),
        ],
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

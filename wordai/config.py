"""Application settings and environment configuration."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LABEL_COLUMN_NAMES = ("category", "label")


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    env: str = "development"
    app_name: str = "WordAI API"
    api_path: str = "/api"

    # Full SQLAlchemy URL; when set it wins over per-request connection params.
    database_url: str = ""
    db_driver: str = "mysql+pymysql"
    db_host: str = "localhost"
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "reservesphp"

    word_table: str = "word"

    artifact_dir: str = "./data/artifacts"
    artifact_key: str = "word-ai-model"

    gateway_url: str = "http://localhost:8000/api"
    gateway_timeout_seconds: float = Field(default=10.0, gt=0.0, le=300.0)

    page_size: int = Field(default=1000, ge=1, le=100000)
    epochs: int = Field(default=50, ge=1, le=10000)
    batch_size: int = Field(default=32, ge=1, le=65536)
    validation_split: float = Field(default=0.2, ge=0.0, le=0.9)
    learning_rate: float = Field(default=1e-3, gt=0.0, le=1.0)
    seed: int = 42

    max_request_mb: int = Field(default=8, ge=1, le=2048)

    @model_validator(mode="after")
    def validate_paths(self) -> "Settings":
        """Reject table names that are not bare SQL identifiers and malformed API paths."""
        name = self.word_table
        if not name or not name.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {name!r}")
        if not self.api_path.startswith("/") or self.api_path.endswith("/"):
            raise ValueError("API_PATH must start with '/' and must not end with '/'")
        return self

    @property
    def label_column_names(self) -> tuple[str, ...]:
        """Column names treated as the supervised target when present."""
        return DEFAULT_LABEL_COLUMN_NAMES


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import make_url

from autoscale_store.constants import DEFAULT_API_CACHE_TTL


class Settings(BaseSettings):
    """Store and cache settings driven entirely by environment variables."""

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/autoscale.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    database_pool_size: int = Field(default=20, env="DATABASE_POOL_SIZE", ge=5, le=100)
    database_max_overflow: int = Field(default=30, env="DATABASE_MAX_OVERFLOW", ge=10, le=100)
    autoscale_db_name: str = Field(default="Autoscale", env="AUTOSCALE_DB_NAME", min_length=1)

    # Resource group holding the scale sets
    resource_group: str = Field(default="", env="RESOURCE_GROUP")

    # API Cache Configuration
    api_cache_ttl: int = Field(default=DEFAULT_API_CACHE_TTL, env="API_CACHE_TTL", ge=1)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for file-backed SQLite."""
        if v and v.startswith("sqlite") and ":///" in v:
            db_path = v.split("///")[1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Reject levels the logging module does not know."""
        if v.upper() not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @property
    def is_sqlite(self) -> bool:
        """Check if the document store is backed by SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def is_sqlite_memory(self) -> bool:
        """Check if the document store is an in-memory SQLite database."""
        return self.is_sqlite and make_url(self.database_url).database in (None, "", ":memory:")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }

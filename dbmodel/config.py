"""Configuration management for dbmodel."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


def _find_env_file() -> Optional[str]:
    """Find .env file in multiple locations.

    Search order:
    1. Current working directory
    2. ~/.dbmodel/.env
    3. Package directory (where this file is located)
    """
    if os.path.exists(".env"):
        return ".env"

    user_env = Path.home() / ".dbmodel" / ".env"
    if user_env.exists():
        return str(user_env)

    package_dir = Path(__file__).parent.parent
    package_env = package_dir / ".env"
    if package_env.exists():
        return str(package_env)

    return None


class Settings(BaseSettings):
    """Application settings loaded from DBMODEL_* environment variables."""

    database_url: Optional[str] = Field(
        default=None,
        description="Postgres DSN or DuckDB file path to introspect"
    )
    dialect: str = Field(
        default="postgres",
        description="Catalog dialect: 'postgres' or 'duckdb'"
    )
    default_schema: str = Field(
        default="public",
        description="Schema introspected when none is given"
    )
    log_level: str = Field(
        default="WARNING",
        description="Log level for the dbmodel loggers"
    )
    strict_relations: bool = Field(
        default=False,
        description="Fail instead of warning on ambiguous relations"
    )
    naming_policy: str = Field(
        default="prisma",
        description="Naming policy: 'prisma' or 'preserve'"
    )

    class Config:
        env_prefix = "DBMODEL_"
        env_file = _find_env_file()
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()

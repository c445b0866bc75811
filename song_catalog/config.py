"""
Runtime configuration for the Song Catalog.

All settings come from environment variables so the same build can run
locally (SQLite under .data/) or against a hosted database.
"""

import os
import sys
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field


_REPO_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = _REPO_ROOT / ".data"


class Settings(BaseModel):
    database_url: str = Field(f"sqlite:///{DATA_DIR / 'catalog.db'}")
    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)
    covers_dir: Path = DATA_DIR / "covers"
    cache_size: int = Field(16, ge=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CATALOG_* environment variables."""
        values = {}
        env_map = {
            "database_url": "CATALOG_DATABASE_URL",
            "host": "CATALOG_HOST",
            "port": "CATALOG_PORT",
            "covers_dir": "CATALOG_COVERS_DIR",
            "cache_size": "CATALOG_CACHE_SIZE",
            "log_level": "CATALOG_LOG_LEVEL",
        }
        for field, var in env_map.items():
            raw = os.environ.get(var)
            if raw:
                values[field] = raw
        return cls(**values)


def configure_logging(level: str) -> None:
    """Point loguru's default sink at stderr with the requested level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())

"""Configuration management."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SLOT_NAME = "readStackBooks"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


def _int_setting(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer for %s: %r, using %d", name, value, default)
        return default


class Config:
    """Application configuration read from the environment."""

    def __init__(self) -> None:
        self.HOME = Path(os.getenv("READ_STACK_HOME", str(Path.home() / ".read_stack"))).expanduser()
        db_value = os.getenv("READ_STACK_DB")
        self.DB_PATH = Path(db_value).expanduser() if db_value else self.HOME / "library.db"
        self.SLOT_NAME = os.getenv("READ_STACK_SLOT", DEFAULT_SLOT_NAME)
        self.QUOTA_BYTES = _int_setting("READ_STACK_QUOTA_BYTES", DEFAULT_QUOTA_BYTES)
        self.LOG_LEVEL = os.getenv("READ_STACK_LOG_LEVEL", "INFO").upper()
        self.CORS_ORIGINS = os.getenv("READ_STACK_CORS_ORIGINS", "*")

    @property
    def quota(self) -> Optional[int]:
        return self.QUOTA_BYTES if self.QUOTA_BYTES > 0 else None

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


def get_config() -> Config:
    return Config()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or get_config().LOG_LEVEL),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

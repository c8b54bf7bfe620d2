from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

# Load environment variables from .env file
load_dotenv(find_dotenv())

DEFAULT_BRAPI_BASE_URL = "https://brapi.dev"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    brapi_token: Optional[str]
    brapi_base_url: str = DEFAULT_BRAPI_BASE_URL
    brapi_timeout: float = 15.0
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def get_settings() -> Settings:
    """Read settings from the environment (re-read on every call)."""
    return Settings(
        brapi_token=os.getenv("BRAPI_TOKEN") or None,
        brapi_base_url=os.getenv("BRAPI_BASE_URL", DEFAULT_BRAPI_BASE_URL).rstrip("/"),
        brapi_timeout=_float_env("BRAPI_TIMEOUT", 15.0),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", 3001),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional


DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"]


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Return an environment setting with an optional default."""
    return os.getenv(name, default)


def get_required_setting(name: str) -> str:
    """Return a required environment setting or raise a ValueError."""
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _float_setting(name: str, default: float) -> float:
    try:
        return float(get_setting(name) or default)
    except ValueError:
        return default


def _int_setting(name: str, default: int) -> int:
    try:
        return int(get_setting(name) or default)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    record_api_url: str
    record_api_key: Optional[str] = None
    timeout: float = 20.0
    page_limit: int = 100
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))


def cors_origins() -> List[str]:
    raw = get_setting("DASHBOARD_CORS_ORIGINS")
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


def load_settings() -> Settings:
    """
    Build settings from the environment.
    RECORD_API_URL is required; everything else has a local-development default.
    """
    return Settings(
        record_api_url=get_required_setting("RECORD_API_URL").rstrip("/"),
        record_api_key=get_setting("RECORD_API_KEY"),
        timeout=max(1.0, _float_setting("RECORD_API_TIMEOUT", 20.0)),
        page_limit=max(1, min(500, _int_setting("RECORD_PAGE_LIMIT", 100))),
        cors_origins=cors_origins(),
    )


def configure_logging() -> None:
    level = (get_setting("LOG_LEVEL", "INFO") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

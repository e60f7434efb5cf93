"""
Settings read from the environment once at startup.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    data_dir: str
    port: int = 5175
    cors_origin: str = "http://localhost:5173"
    cache_maxsize: int = 2048
    cache_ttl: float = 0.0
    admin_token: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        return cls(
            data_dir=os.environ.get("DATA_DIR") or os.path.join(BASE_DIR, "data"),
            port=_env_int("PORT", 5175),
            cors_origin=os.environ.get("CORS_ORIGIN", "http://localhost:5173"),
            cache_maxsize=_env_int("CACHE_MAXSIZE", 2048),
            cache_ttl=_env_float("CACHE_TTL", 0.0),
            admin_token=os.environ.get("ADMIN_TOKEN") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level="INFO"):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

"""
Configuration helpers for the profile page backend.

Exposes a Settings object that reads environment variables (public base URL,
database URL, editor timings, background defaults) so that routers/services
do not fetch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    public_base_url: str
    database_url: str
    save_debounce_seconds: float
    image_opacity_default: float
    image_opacity_upload_default: float
    session_ttl_seconds: int
    log_level: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _unit(value: str, default: float) -> float:
        v = _float(value, default)
        return v if 0.0 <= v <= 1.0 else default

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./profilepage.db"),
        save_debounce_seconds=max(0.0, _float(os.getenv("SAVE_DEBOUNCE_SECONDS", "3"), 3.0)),
        image_opacity_default=_unit(os.getenv("IMAGE_OPACITY_DEFAULT", "0.5"), 0.5),
        image_opacity_upload_default=_unit(os.getenv("IMAGE_OPACITY_UPLOAD_DEFAULT", "0.7"), 0.7),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )

# ThreatView: Configuration
#
# Settings are read from environment variables once per process.  A
# ``.env`` file in the working directory is loaded first, so local
# development does not need exported variables.

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .core.tiers import SubscriptionTier

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://threatview-backend.onrender.com/api/threats"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive (got %d), using default %d", name, value, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid number for %s=%r, using default %.1f", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive (got %s), using default %.1f", name, raw, default)
        return default
    return value


def _env_tier(name: str, default: SubscriptionTier) -> SubscriptionTier:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return SubscriptionTier.parse(raw)
    except ValueError:
        logger.warning("Invalid tier for %s=%r, using %s", name, raw, default.value)
        return default


@dataclass
class Settings:
    """Runtime settings for the dashboard backend."""

    feed_url: str = DEFAULT_FEED_URL
    feed_timeout: float = 15.0
    refresh_interval: int = 300  # seconds
    top_n: int = 5
    notification_ms: int = 3000
    default_tier: SubscriptionTier = SubscriptionTier.FREE
    audit_dir: Path = field(default_factory=lambda: Path("./audit_logs"))

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))
        return cls(
            feed_url=os.environ.get("THREATVIEW_FEED_URL", DEFAULT_FEED_URL),
            feed_timeout=_env_float("THREATVIEW_FEED_TIMEOUT", 15.0),
            refresh_interval=_env_int("THREATVIEW_REFRESH_INTERVAL", 300),
            top_n=_env_int("THREATVIEW_TOP_N", 5),
            notification_ms=_env_int("THREATVIEW_NOTIFY_MS", 3000),
            default_tier=_env_tier("THREATVIEW_DEFAULT_TIER", SubscriptionTier.FREE),
            audit_dir=Path(os.environ.get("THREATVIEW_AUDIT_DIR", "./audit_logs")),
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings.from_env()
    return _settings

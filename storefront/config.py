"""Runtime configuration read from environment variables."""
import os
from dataclasses import dataclass
from functools import cache
from typing import Optional

from storefront.logging import get_logger

logger = get_logger(__name__)

STORAGE_BACKENDS = ("memory", "file", "redis")
DEFAULT_STORAGE_PATH = ".storefront/local_storage.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}, using {default}")
        return default


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}")
        return default


@dataclass(frozen=True)
class Settings:
    """Storefront settings."""
    storage_backend: str = "file"
    storage_path: str = DEFAULT_STORAGE_PATH
    # Upstash uses REST_URL and REST_TOKEN
    redis_url: str = ""
    redis_token: str = ""
    cart_ttl_seconds: Optional[int] = None  # None = keep forever, like localStorage
    sound_enabled: bool = True
    sound_volume: float = 0.5
    supabase_url: str = ""
    supabase_anon_key: str = ""

    def __post_init__(self):
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"CART_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, "
                f"got {self.storage_backend!r}"
            )
        if not 0 <= self.sound_volume <= 1:
            raise ValueError("CART_SOUND_VOLUME must be between 0 and 1")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            storage_backend=os.environ.get("CART_STORAGE_BACKEND", "file").strip().lower(),
            storage_path=os.environ.get("CART_STORAGE_PATH", DEFAULT_STORAGE_PATH),
            redis_url=os.environ.get("UPSTASH_REDIS_REST_URL", ""),
            redis_token=os.environ.get("UPSTASH_REDIS_REST_TOKEN", ""),
            cart_ttl_seconds=_env_int("CART_TTL_SECONDS", None),
            sound_enabled=_env_bool("CART_SOUND_ENABLED", True),
            sound_volume=_env_float("CART_SOUND_VOLUME", 0.5),
            supabase_url=os.environ.get("SUPABASE_URL", ""),
            supabase_anon_key=os.environ.get("SUPABASE_ANON_KEY", ""),
        )


@cache
def get_settings() -> Settings:
    """Settings from the environment, read once per process."""
    return Settings.from_env()

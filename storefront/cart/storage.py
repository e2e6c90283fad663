"""
Durable key-value storage for carts.

Values are plain strings (JSON documents), mirroring browser localStorage:
``cart_<userId>`` for a signed-in shopper and ``cart_anonymous`` otherwise.
"""
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from upstash_redis import Redis

from storefront.config import Settings, get_settings
from storefront.logging import get_logger

logger = get_logger(__name__)


class StorageKeys:
    """Key names for cart storage."""

    CART = "cart_"  # cart_{user_id}
    CART_ANONYMOUS = "cart_anonymous"

    @staticmethod
    def cart_key(user_id: str) -> str:
        return f"{StorageKeys.CART}{user_id}"

    @staticmethod
    def for_identity(user_id: Optional[str]) -> str:
        """Active key for an identity; None means anonymous."""
        if user_id:
            return StorageKeys.cart_key(user_id)
        return StorageKeys.CART_ANONYMOUS


class KeyValueStorage(ABC):
    """String key-value store that survives restarts."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; no-op when absent."""

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryStorage(KeyValueStorage):
    """Process-local storage. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class FileStorage(KeyValueStorage):
    """
    All keys in a single JSON document on disk.

    Every write rewrites the document through a temp file and os.replace so
    a crash never leaves a half-written file behind.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Storage file {self.path} is not valid JSON, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} is not a JSON object, treating as empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


class RedisStorage(KeyValueStorage):
    """Upstash Redis backed storage, optionally expiring abandoned carts."""

    def __init__(self, redis: Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> Optional[str]:
        value = self.redis.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set(self, key: str, value: str) -> None:
        if self.ttl_seconds:
            self.redis.set(key, value, ex=self.ttl_seconds)
        else:
            self.redis.set(key, value)

    def delete(self, key: str) -> None:
        self.redis.delete(key)

    def exists(self, key: str) -> bool:
        return bool(self.redis.exists(key))


def create_storage(settings: Optional[Settings] = None) -> KeyValueStorage:
    """Build the storage backend named by CART_STORAGE_BACKEND."""
    settings = settings or get_settings()

    if settings.storage_backend == "memory":
        return MemoryStorage()
    if settings.storage_backend == "redis":
        from storefront.db import get_redis_sync

        return RedisStorage(get_redis_sync(settings), ttl_seconds=settings.cart_ttl_seconds)
    return FileStorage(settings.storage_path)

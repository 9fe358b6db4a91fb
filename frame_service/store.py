"""
Key-Value Stores

Persistence collaborators for the element-set cache. Values are opaque
strings; writes are last-write-wins per key.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import redis

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Persistent string store with get/set semantics."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""


class MemoryStore(KeyValueStore):
    """Process-local store; contents vanish with the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()

    def __len__(self):
        return len(self._data)


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk.

    The whole file is rewritten on each ``set`` through a temporary file and
    an atomic rename.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open() as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp_path.open("w") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)


class RedisStore(KeyValueStore):
    """Store backed by a Redis server."""

    def __init__(self, client: "redis.Redis", prefix: str = "frame_service:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "frame_service:") -> "RedisStore":
        client = redis.from_url(url, decode_responses=True)
        client.ping()
        return cls(client, prefix)

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(self.prefix + key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self.client.set(self.prefix + key, value)


def open_store(redis_url: str = "", cache_file: str = "") -> KeyValueStore:
    """
    Pick the best available store.

    Redis when configured and reachable, otherwise a JSON file when a path is
    given, otherwise memory.
    """
    if redis_url:
        try:
            store = RedisStore.from_url(redis_url)
            logger.info("Redis connection successful.")
            return store
        except (redis.exceptions.RedisError, ValueError) as e:
            logger.warning(f"Redis connection failed or not configured: {e}. Falling back.")
    if cache_file:
        logger.info(f"Using JSON file cache at {cache_file}")
        return JsonFileStore(cache_file)
    logger.info("Using in-memory cache; element sets will not persist")
    return MemoryStore()

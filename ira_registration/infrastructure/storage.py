"""
Durable key-value storage behind the draft store and session identity.

The registration core depends only on the KeyValueStorage protocol
(get/set/remove of string values). Backends:
- InMemoryStorage: tests and ephemeral runs
- FileStorage: single JSON file, the local-device equivalent of browser storage
- RedisStorage: shared store for server-side hosting of the wizard
"""

import json
import os
import tempfile
from typing import Dict, Optional, Protocol, runtime_checkable

import redis
import structlog

from ira_registration.core.config import Settings, settings
from ira_registration.core.exceptions import StorageError

logger = structlog.get_logger(__name__)


@runtime_checkable
class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class FileStorage:
    """
    All keys in one JSON object on disk.

    Writes go through a temp file and os.replace so a crash never leaves a
    half-written file behind.
    """

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.error("file_storage_read_failed", path=self.path, error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("file_storage_unexpected_shape", path=self.path)
            return {}
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".registration-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("file_storage_write_failed", path=self.path, error=str(e))
            raise StorageError("Failed to write local registration state", {"path": self.path}) from e

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class RedisStorage:
    """Redis-backed storage with an optional key namespace and TTL."""

    def __init__(self, client: "redis.Redis", namespace: str = "", expire: Optional[int] = None):
        self.client = client
        self.namespace = namespace
        self.expire = expire

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisStorage":
        client = redis.Redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.error("redis_get_error", key=key, error=str(e))
            raise StorageError("Failed to read local registration state", {"key": key}) from e

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value, ex=self.expire)
        except redis.RedisError as e:
            logger.error("redis_set_error", key=key, error=str(e))
            raise StorageError("Failed to write local registration state", {"key": key}) from e

    def remove(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.error("redis_delete_error", key=key, error=str(e))
            raise StorageError("Failed to remove local registration state", {"key": key}) from e


def create_storage(config: Optional[Settings] = None) -> KeyValueStorage:
    """Build the storage backend selected by settings.storage_backend."""
    config = config or settings
    if config.storage_backend == "memory":
        return InMemoryStorage()
    if config.storage_backend == "redis":
        return RedisStorage.from_url(config.redis_url, namespace="registration")
    return FileStorage(config.storage_path)

"""Key-value storage backends and the session identity store."""

import json
from unittest.mock import MagicMock

import pytest
import redis

from ira_registration.core.config import Settings
from ira_registration.core.exceptions import StorageError
from ira_registration.infrastructure.storage import (
    FileStorage,
    InMemoryStorage,
    KeyValueStorage,
    RedisStorage,
    create_storage,
)
from ira_registration.services.auth.session_identity import SessionIdentityStore


def test_in_memory_round_trip():
    storage = InMemoryStorage()
    storage.set("k", "v")
    assert storage.get("k") == "v"
    storage.remove("k")
    storage.remove("k")
    assert storage.get("k") is None


def test_backends_satisfy_protocol(tmp_path):
    assert isinstance(InMemoryStorage(), KeyValueStorage)
    assert isinstance(FileStorage(str(tmp_path / "s.json")), KeyValueStorage)
    assert isinstance(RedisStorage(MagicMock()), KeyValueStorage)


class TestFileStorage:
    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "state.json")
        FileStorage(path).set("session_id", "abc")
        assert FileStorage(path).get("session_id") == "abc"
        with open(path, encoding="utf-8") as fh:
            assert json.load(fh) == {"session_id": "abc"}

    def test_missing_file_reads_as_empty(self, tmp_path):
        assert FileStorage(str(tmp_path / "absent.json")).get("anything") is None

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        storage = FileStorage(str(path))
        assert storage.get("session_id") is None
        storage.set("session_id", "fresh")
        assert storage.get("session_id") == "fresh"

    def test_remove(self, tmp_path):
        storage = FileStorage(str(tmp_path / "state.json"))
        storage.set("a", "1")
        storage.set("b", "2")
        storage.remove("a")
        assert storage.get("a") is None
        assert storage.get("b") == "2"


class TestRedisStorage:
    def test_namespaced_keys_and_expiry(self):
        client = MagicMock()
        client.get.return_value = "abc"
        storage = RedisStorage(client, namespace="registration", expire=3600)

        storage.set("session_id", "abc")
        client.set.assert_called_once_with("registration:session_id", "abc", ex=3600)
        assert storage.get("session_id") == "abc"
        client.get.assert_called_once_with("registration:session_id")
        storage.remove("session_id")
        client.delete.assert_called_once_with("registration:session_id")

    def test_redis_errors_become_storage_errors(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        with pytest.raises(StorageError):
            RedisStorage(client).get("session_id")


class TestCreateStorage:
    def test_memory(self):
        assert isinstance(create_storage(Settings(storage_backend="memory")), InMemoryStorage)

    def test_file(self, tmp_path):
        storage = create_storage(Settings(storage_backend="file", storage_path=str(tmp_path / "s.json")))
        assert isinstance(storage, FileStorage)

    def test_redis(self):
        storage = create_storage(Settings(storage_backend="redis", redis_url="redis://localhost:6379/0"))
        assert isinstance(storage, RedisStorage)
        assert storage.namespace == "registration"


class TestSessionIdentity:
    def test_round_trip_and_clear(self):
        storage = InMemoryStorage()
        identity = SessionIdentityStore(storage)
        identity.session_id = "progress-1"
        identity.auth_token = "tok"
        identity.last_login_email = "jane@example.com"

        assert storage.get("session_id") == "progress-1"
        identity.clear()

        assert identity.session_id is None
        assert identity.auth_token is None
        assert identity.last_login_email == "jane@example.com"

    def test_setting_none_removes(self):
        identity = SessionIdentityStore(InMemoryStorage({"session_id": "x"}))
        identity.session_id = None
        assert identity.session_id is None

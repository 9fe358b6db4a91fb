"""
Tests for the key-value store collaborators.

Run with:
    python -m pytest tests/test_store.py -v
"""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import redis

from frame_service.store import JsonFileStore, MemoryStore, RedisStore, open_store


class TestMemoryStore(unittest.TestCase):

    def test_get_set(self):
        store = MemoryStore()
        self.assertIsNone(store.get("missing"))
        store.set("k", "v1")
        store.set("k", "v2")
        self.assertEqual(store.get("k"), "v2")
        self.assertEqual(len(store), 1)
        store.clear()
        self.assertEqual(len(store), 0)


class TestJsonFileStore(unittest.TestCase):
    """Test suite for the JSON file store."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "nested" / "cache.json"

    def tearDown(self):
        self.tmp.cleanup()

    def test_values_survive_new_instance(self):
        JsonFileStore(self.path).set("tle:a", "body-a")
        JsonFileStore(self.path).set("tle:b", "body-b")

        reopened = JsonFileStore(self.path)
        self.assertEqual(reopened.get("tle:a"), "body-a")
        self.assertEqual(reopened.get("tle:b"), "body-b")
        self.assertFalse(self.path.with_suffix(".json.tmp").exists())

    def test_missing_file_reads_empty(self):
        self.assertIsNone(JsonFileStore(self.path).get("anything"))

    def test_unreadable_file_is_ignored(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{broken")
        store = JsonFileStore(self.path)

        with self.assertLogs("frame_service.store", level="WARNING"):
            self.assertIsNone(store.get("k"))

        with self.assertLogs("frame_service.store", level="WARNING"):
            store.set("k", "v")
        self.assertEqual(store.get("k"), "v")


class TestRedisStore(unittest.TestCase):

    def test_prefixed_keys_and_bytes_decoding(self):
        client = MagicMock()
        client.get.return_value = b"payload"
        store = RedisStore(client, prefix="test:")

        store.set("tle:x", "value")
        self.assertEqual(store.get("tle:x"), "payload")

        client.set.assert_called_once_with("test:tle:x", "value")
        client.get.assert_called_once_with("test:tle:x")


class TestOpenStore(unittest.TestCase):
    """Store selection falls back from Redis to file to memory."""

    @patch("frame_service.store.redis.from_url")
    def test_redis_when_reachable(self, from_url):
        from_url.return_value = MagicMock()
        store = open_store("redis://localhost:6379/0", "")
        self.assertIsInstance(store, RedisStore)
        from_url.return_value.ping.assert_called_once()

    @patch("frame_service.store.redis.from_url")
    def test_unreachable_redis_falls_back_to_file(self, from_url):
        from_url.return_value.ping.side_effect = redis.exceptions.ConnectionError("refused")
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertLogs("frame_service.store", level="WARNING"):
                store = open_store("redis://localhost:1/0", str(Path(tmp) / "c.json"))
        self.assertIsInstance(store, JsonFileStore)

    def test_memory_when_nothing_configured(self):
        self.assertIsInstance(open_store("", ""), MemoryStore)


if __name__ == "__main__":
    unittest.main()

"""
Tests for Redis counter storage
"""
import hashlib

import fakeredis
import pytest
from redis.exceptions import WatchError

from hllcount.config import settings
from hllcount.core.sketches.hyperloglog import HyperLogLog, InvalidRegisterCountError
from hllcount.core.storage import RedisStorage

REFERENCE = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"


def key(i: int) -> bytes:
    return hashlib.sha256(f"author_{i}".encode()).digest()


@pytest.fixture
def storage():
    return RedisStorage(fakeredis.FakeRedis())


class TestRedisStorage:
    """Test counter persistence"""

    def test_ping(self, storage):
        assert storage.ping()

    def test_missing_counter_is_empty(self, storage):
        hll = storage.get_hll(REFERENCE, 14)
        assert hll.offset == 14
        assert hll.cardinality() == 0

    def test_add_and_count(self, storage):
        for i in range(20):
            storage.add_to_hll(REFERENCE, 14, key(i))

        expected = HyperLogLog(14)
        for i in range(20):
            expected.add(key(i))

        assert storage.get_hll(REFERENCE, 14) == expected
        assert storage.get_hll_cardinality(REFERENCE, 14) == expected.cardinality()

    def test_stored_as_raw_registers(self, storage):
        storage.add_to_hll(REFERENCE, 14, key(1))

        data = storage.redis.get(f"hll:{REFERENCE}:14")
        assert len(data) == 256

    def test_counters_are_separate(self, storage):
        storage.add_to_hll(REFERENCE, 14, key(1))

        assert storage.get_hll_cardinality(REFERENCE, 15) == 0
        assert storage.get_hll_cardinality("b" * 64, 14) == 0

    def test_reference_case_insensitive(self, storage):
        storage.add_to_hll(REFERENCE.upper(), 14, key(1))
        assert storage.get_hll_cardinality(REFERENCE, 14) == 1

    def test_merge_registers(self, storage):
        storage.add_to_hll(REFERENCE, 14, key(1))

        remote = HyperLogLog(14)
        remote.add(key(2))
        remote.add(key(3))
        merged = storage.merge_registers(REFERENCE, 14, remote.get_registers())

        assert merged.cardinality() == 3
        assert storage.get_hll_cardinality(REFERENCE, 14) == 3

    def test_merge_registers_rejects_bad_buffer(self, storage):
        with pytest.raises(InvalidRegisterCountError):
            storage.merge_registers(REFERENCE, 14, bytes(12))
        assert storage.redis.get(f"hll:{REFERENCE}:14") is None

    def test_delete(self, storage):
        storage.add_to_hll(REFERENCE, 14, key(1))

        assert storage.delete_hll(REFERENCE, 14)
        assert not storage.delete_hll(REFERENCE, 14)
        assert storage.get_hll_cardinality(REFERENCE, 14) == 0

    def test_corrupt_counter(self, storage):
        storage.redis.set(f"hll:{REFERENCE}:14", b"\x01\x02")
        with pytest.raises(InvalidRegisterCountError):
            storage.get_hll(REFERENCE, 14)

    def test_no_ttl_by_default(self, storage):
        storage.add_to_hll(REFERENCE, 14, key(1))
        assert storage.redis.ttl(f"hll:{REFERENCE}:14") == -1

    def test_ttl(self, storage, monkeypatch):
        monkeypatch.setattr(settings, "HLL_TTL_SECONDS", 600)
        storage.add_to_hll(REFERENCE, 14, key(1))

        assert 0 < storage.redis.ttl(f"hll:{REFERENCE}:14") <= 600


class TestConcurrentUpdates:
    """Test WATCH/MULTI retries"""

    def test_retries_after_conflict(self, storage, monkeypatch):
        original = storage._decode
        calls = []

        def racing_decode(data, offset, redis_key):
            calls.append(redis_key)
            if len(calls) == 1:
                # Another writer lands between read and write
                other = HyperLogLog(offset)
                other.add(key(99))
                storage.redis.set(redis_key, other.to_bytes())
            return original(data, offset, redis_key)

        monkeypatch.setattr(storage, "_decode", racing_decode)
        storage.add_to_hll(REFERENCE, 14, key(1))

        assert len(calls) == 2
        assert storage.get_hll_cardinality(REFERENCE, 14) == 2

    def test_gives_up_after_retries(self, storage, monkeypatch):
        original = storage._decode

        def always_racing(data, offset, redis_key):
            storage.redis.set(redis_key, HyperLogLog(offset).to_bytes())
            return original(data, offset, redis_key)

        monkeypatch.setattr(storage, "_decode", always_racing)
        with pytest.raises(WatchError):
            storage.add_to_hll(REFERENCE, 14, key(1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Redis storage layer for HyperLogLog counters
Registers are stored as 256 raw bytes, one key per (reference, offset)
"""
import logging
from typing import Callable, Optional

import redis
from redis import Redis
from redis.exceptions import WatchError

from hllcount.config import settings
from hllcount.core.sketches.hyperloglog import HyperLogLog, RegisterSource
from hllcount.utils.keys import RedisKeyGenerator

logger = logging.getLogger(__name__)


class RedisStorage:
    """
    Redis storage for counter register sets

    Updates run as optimistic WATCH/MULTI transactions so that several
    writers can share a counter without losing increments.
    """

    def __init__(self, redis_client: Optional[Redis] = None):
        """
        Initialize Redis storage

        Args:
            redis_client: Optional Redis client (creates new if None)
        """
        if redis_client:
            self.redis = redis_client
        else:
            self.redis = redis.from_url(
                settings.get_redis_url(),
                decode_responses=False,  # Registers are raw bytes
            )

        self.key_gen = RedisKeyGenerator(settings.HLL_KEY_PREFIX)

    def ping(self) -> bool:
        """Check Redis connection"""
        try:
            return self.redis.ping()
        except redis.RedisError:
            return False

    # =====================
    # HyperLogLog Operations
    # =====================

    def add_to_hll(self, reference: str, offset: int, key: bytes) -> HyperLogLog:
        """
        Record a key in the counter for (reference, offset)

        Args:
            reference: Hex id naming the counter
            offset: Key window offset
            key: 32-byte key to record

        Returns:
            Counter state after the update
        """
        return self._update(reference, offset, lambda hll: hll.add(key))

    def merge_registers(
        self, reference: str, offset: int, registers: RegisterSource
    ) -> HyperLogLog:
        """
        Fold a foreign register buffer into the stored counter

        Args:
            reference: Hex id naming the counter
            offset: Key window offset
            registers: 256-byte register buffer (e.g. from another relay)

        Returns:
            Counter state after the merge
        """
        return self._update(reference, offset, lambda hll: hll.merge_registers(registers))

    def get_hll(self, reference: str, offset: int) -> HyperLogLog:
        """
        Load a counter

        Returns:
            Stored counter, or an empty one if nothing was recorded yet
        """
        key = self.key_gen.hll_key(reference, offset)
        return self._decode(self.redis.get(key), offset, key)

    def get_hll_cardinality(self, reference: str, offset: int) -> int:
        """
        Get distinct count for a counter

        Returns:
            Estimated distinct count
        """
        return self.get_hll(reference, offset).cardinality()

    def delete_hll(self, reference: str, offset: int) -> bool:
        """Remove a counter; returns True if one existed"""
        key = self.key_gen.hll_key(reference, offset)
        return bool(self.redis.delete(key))

    def _update(
        self, reference: str, offset: int, mutate: Callable[[HyperLogLog], object]
    ) -> HyperLogLog:
        """Load, mutate and save a counter under WATCH"""
        key = self.key_gen.hll_key(reference, offset)
        attempts = max(1, settings.HLL_WATCH_RETRIES)

        with self.redis.pipeline() as pipe:
            for attempt in range(1, attempts + 1):
                try:
                    pipe.watch(key)
                    hll = self._decode(pipe.get(key), offset, key)
                    mutate(hll)

                    pipe.multi()
                    self._write(pipe, key, hll)
                    pipe.execute()
                    return hll
                except WatchError:
                    logger.debug(f"Concurrent update on {key}, retry {attempt}/{attempts}")

        logger.warning(f"Giving up on {key} after {attempts} conflicting updates")
        raise WatchError(f"Could not update {key}: too many concurrent writers")

    def _decode(self, data: Optional[bytes], offset: int, key: str) -> HyperLogLog:
        """Build a counter from stored bytes"""
        if data is None:
            return HyperLogLog(offset)
        try:
            return HyperLogLog.from_bytes(data, offset)
        except ValueError as e:
            logger.error(f"Corrupt counter at {key}: {e}")
            raise

    def _write(self, pipe, key: str, hll: HyperLogLog) -> None:
        """Queue the write of a counter, with TTL if configured"""
        data = hll.to_bytes()
        ttl = settings.HLL_TTL_SECONDS
        if ttl > 0:
            pipe.setex(key, ttl, data)
        else:
            pipe.set(key, data)

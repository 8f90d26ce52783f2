"""
Approximate distinct counting for event networks

Counters are 256-register HyperLogLogs fed from a window of each 32-byte key.
"""
import logging
from typing import Optional

from redis import Redis

from hllcount.config import settings


def create_processor(redis_client: Optional[Redis] = None):
    """
    Create and configure an event processor

    Args:
        redis_client: Optional Redis client (connects using settings if None)

    Returns:
        EventProcessor instance
    """
    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    from hllcount.core.storage import RedisStorage
    from hllcount.core.processor import EventProcessor

    storage = RedisStorage(redis_client)
    logging.getLogger(__name__).info(f"{settings.APP_NAME} {settings.APP_VERSION} ready")
    return EventProcessor(storage)

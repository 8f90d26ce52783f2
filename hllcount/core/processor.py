"""
Event processing engine
Routes incoming events to their counters and answers count queries
"""
from typing import List, Optional
import logging

from hllcount.config import settings
from hllcount.core.offsets import (
    Contribution,
    derive_event_contributions,
    derive_filter_contribution,
)
from hllcount.core.storage import RedisStorage
from hllcount.models.events import CountResponse, Event, Filter

logger = logging.getLogger(__name__)


class EventProcessor:
    """
    Feed events into HyperLogLog counters and read them back for filters
    """

    def __init__(self, storage: RedisStorage):
        """
        Initialize event processor

        Args:
            storage: Redis storage instance
        """
        self.storage = storage

    def process_event(self, event: Event) -> List[Contribution]:
        """
        Process a single event

        The author's key is added to every counter the event contributes to.

        Args:
            event: Event to process

        Returns:
            Counters that were updated
        """
        contributions = derive_event_contributions(event)
        if not contributions:
            return contributions

        try:
            key = event.subject_key
            for contribution in contributions:
                self.storage.add_to_hll(contribution.reference, contribution.offset, key)

            logger.debug(
                f"Processed kind {event.kind} event {event.id}: "
                f"{len(contributions)} counter(s) updated"
            )
            return contributions

        except Exception as e:
            logger.error(f"Error processing event {event.id}: {e}", exc_info=True)
            raise

    def process_batch(self, events: List[Event]) -> int:
        """
        Process multiple events

        Args:
            events: List of events

        Returns:
            Number of successfully processed events

        Raises:
            ValueError: If the batch is larger than MAX_BATCH_SIZE
        """
        if len(events) > settings.MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch of {len(events)} events exceeds limit of {settings.MAX_BATCH_SIZE}"
            )

        success_count = 0
        for event in events:
            try:
                self.process_event(event)
                success_count += 1
            except Exception as e:
                logger.error(f"Failed to process event: {e}")

        return success_count

    def count(self, filter: Filter) -> Optional[CountResponse]:
        """
        Approximate count for a filter

        Args:
            filter: Query filter

        Returns:
            Count reply with the register dump, or None when the filter is
            not eligible and must be counted exactly
        """
        contribution = derive_filter_contribution(filter)
        if contribution is None:
            logger.debug("Filter not eligible for approximate counting")
            return None

        hll = self.storage.get_hll(contribution.reference, contribution.offset)
        return CountResponse(count=hll.cardinality(), hll=hll.to_hex())

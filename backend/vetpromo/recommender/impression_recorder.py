"""
Impression Recorder
===================

Caller-side helper that appends an `impression` event once a Selection has
actually been shown. `select()` never writes; without this the frequency
caps have nothing to count.
"""

import logging
from typing import Any, Dict, Optional

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.interfaces import EventStore
from vetpromo.recommender.models import Selection
from vetpromo.schemas.event import EventType, ImpressionEvent

logger = logging.getLogger(__name__)


class ImpressionRecorder:
    def __init__(self, event_store: EventStore, max_retries: int = 3):
        self.event_store = event_store
        self.max_retries = max_retries

    async def record_impression(
        self,
        selection: Selection,
        owner_id: str,
        pet_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Append an impression for `selection`.

        Args:
            selection: The Selection that was shown
            owner_id: Owner user ID
            pet_id: Pet ID
            metadata: Optional extra metadata

        Returns:
            True if recorded, False after all retries failed
        """
        event = ImpressionEvent(
            owner_id=owner_id,
            pet_id=pet_id,
            promo_item_id=selection.promo_item_id,
            event_type=EventType.IMPRESSION,
            context=selection.context,
            metadata={"source": selection.source.value, **(metadata or {})},
        )

        for attempt in range(self.max_retries):
            try:
                await self.event_store.record_event(event)
                logger.debug(
                    f"Recorded impression: pet_id={pet_id}, "
                    f"item={selection.promo_item_id}, context={selection.context}"
                )
                return True
            except DependencyUnavailable as e:
                logger.warning(
                    f"Failed to record impression (attempt {attempt + 1}/{self.max_retries}): {e}"
                )

        logger.error(
            f"Failed to record impression after {self.max_retries} attempts: "
            f"pet_id={pet_id}, item={selection.promo_item_id}"
        )
        return False

"""
Event Store
===========

SQL access to the append-only `promo_events` ledger.
"""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from vetpromo.errors import DependencyUnavailable
from vetpromo.schemas.event import EventType, ImpressionEvent
from vetpromo.storage.database import DATABASE_ERRORS, fetch_scalar, get_session_factory

logger = logging.getLogger(__name__)

DEPENDENCY = "event_store"


class SqlEventStore:
    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    async def count_impressions(
        self,
        owner_id: str,
        pet_id: str,
        since: datetime,
        context: Optional[str] = None,
        candidate_id: Optional[str] = None,
    ) -> int:
        """
        Count impressions of the owner / pet pair since `since`.

        Args:
            context: Restrict to one presentation context
            candidate_id: Restrict to one promo item
        """
        sql = """
            SELECT COUNT(*) FROM promo_events
            WHERE owner_user_id = :owner_id
              AND pet_id = :pet_id
              AND event_type = :event_type
              AND created_at >= :since
        """
        params = {
            "owner_id": owner_id,
            "pet_id": pet_id,
            "event_type": EventType.IMPRESSION.value,
            "since": since,
        }
        if context is not None:
            sql += " AND context = :context"
            params["context"] = context
        if candidate_id is not None:
            sql += " AND promo_item_id = :candidate_id"
            params["candidate_id"] = candidate_id

        count = await fetch_scalar(self.session_factory, sql, params, DEPENDENCY)
        return int(count or 0)

    async def record_event(self, event: ImpressionEvent) -> None:
        metadata_json = json.dumps(event.metadata) if event.metadata else None
        try:
            async with self.session_factory() as session:
                await session.execute(
                    text("""
                        INSERT INTO promo_events (
                            owner_user_id, pet_id, promo_item_id,
                            event_type, context, metadata, created_at
                        ) VALUES (
                            :owner_id, :pet_id, :promo_item_id,
                            :event_type, :context, CAST(:metadata AS jsonb), :created_at
                        )
                    """),
                    {
                        "owner_id": event.owner_id,
                        "pet_id": event.pet_id,
                        "promo_item_id": event.promo_item_id,
                        "event_type": event.event_type.value,
                        "context": event.context,
                        "metadata": metadata_json,
                        "created_at": event.occurred_at,
                    }
                )
                await session.commit()
        except DATABASE_ERRORS as e:
            raise DependencyUnavailable(DEPENDENCY, str(e)) from e

        logger.debug(
            f"Recorded {event.event_type.value} for pet {event.pet_id}: "
            f"item={event.promo_item_id}, context={event.context}"
        )

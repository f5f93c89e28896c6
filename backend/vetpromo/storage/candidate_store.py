"""
Candidate Store
===============

SQL access to `promo_items` with their active, date-bounded campaigns.

An item attached to several campaigns comes back once per campaign; the
retrieval stage collapses those rows.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from vetpromo.schemas.candidate import Candidate, ServiceType
from vetpromo.storage.database import fetch_all, get_session_factory

logger = logging.getLogger(__name__)

DEPENDENCY = "candidate_store"

ITEM_COLUMNS = """
    pi.promo_item_id, pi.tenant_id, pi.name, pi.category, pi.species, pi.lifecycle_target,
    pi.description, pi.extended_description, pi.image_url, pi.product_url,
    pi.tags_include, pi.tags_exclude, pi.priority, pi.status, pi.service_type,
    pi.updated_at
"""

CAMPAIGN_FIELDS = ("campaign_id", "frequency_cap", "utm_campaign", "contexts")


def candidate_from_row(row: Mapping[str, Any]) -> Optional[Candidate]:
    """
    Validate one joined row; unreadable rows are skipped with a warning.
    """
    data: Dict[str, Any] = {k: v for k, v in row.items() if k not in CAMPAIGN_FIELDS}
    if row.get("campaign_id") is not None:
        data["campaign"] = {k: row.get(k) for k in CAMPAIGN_FIELDS}
    try:
        return Candidate(**data)
    except ValidationError as e:
        logger.warning(f"Skipping unreadable promo item {row.get('promo_item_id')}: {e}")
        return None


class SqlCandidateStore:
    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    async def get_published_candidates(
        self,
        context: str,
        service_type: Optional[ServiceType],
        today: datetime,
    ) -> List[Candidate]:
        """
        Published items serving `service_type`, one row per active campaign.

        Items without a declared service type count as promos.
        """
        rows = await fetch_all(
            self.session_factory,
            f"""
                SELECT {ITEM_COLUMNS},
                       pc.campaign_id, pc.frequency_cap, pc.utm_campaign, pc.contexts
                FROM promo_items pi
                LEFT JOIN campaign_items ci ON ci.promo_item_id = pi.promo_item_id
                LEFT JOIN promo_campaigns pc ON pc.campaign_id = ci.campaign_id
                  AND pc.status = 'active'
                  AND (pc.start_date IS NULL OR pc.start_date <= :today)
                  AND (pc.end_date IS NULL OR pc.end_date >= :today)
                WHERE pi.status = 'published'
                  AND (
                    CAST(:service_type AS text) IS NULL
                    OR :service_type = ANY(pi.service_type)
                    OR (:service_type = 'promo' AND COALESCE(cardinality(pi.service_type), 0) = 0)
                  )
                ORDER BY pi.promo_item_id,
                         (pc.contexts IS NOT NULL AND :context = ANY(pc.contexts)) DESC NULLS LAST,
                         pi.priority DESC
            """,
            {
                "context": context,
                "service_type": service_type.value if service_type else None,
                "today": today.date(),
            },
            DEPENDENCY
        )
        candidates = [c for c in (candidate_from_row(row) for row in rows) if c is not None]
        logger.debug(f"Loaded {len(candidates)} candidate rows for context={context}")
        return candidates

    async def get_published_candidate(self, candidate_id: str) -> Optional[Candidate]:
        rows = await fetch_all(
            self.session_factory,
            f"""
                SELECT {ITEM_COLUMNS}
                FROM promo_items pi
                WHERE pi.promo_item_id = :candidate_id AND pi.status = 'published'
                LIMIT 1
            """,
            {"candidate_id": candidate_id},
            DEPENDENCY
        )
        if not rows:
            return None
        return candidate_from_row(rows[0])

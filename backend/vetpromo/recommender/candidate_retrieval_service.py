"""
Candidate Retrieval Service
===========================

Fetch published candidates for a context, each carrying at most one active
campaign override.

Logic:
1. Resolve the service type (explicit, else the context rule's first one)
2. Ask the candidate store for published items of that service type
3. Collapse duplicate rows per item: prefer a campaign whose contexts include
   the current context, then a row without campaign, then any other campaign;
   ties by static priority

A storage error is fatal to the decision (fail closed): returning an
unfiltered result set would be unsafe.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.context_rules import ContextRule
from vetpromo.recommender.interfaces import CandidateStore
from vetpromo.schemas.candidate import Candidate, CandidateStatus, ServiceType

logger = logging.getLogger(__name__)


def _campaign_preference(candidate: Candidate, context: str) -> Tuple[int, int]:
    if candidate.campaign is None:
        rank = 1
    elif context in candidate.campaign.contexts:
        rank = 2
    else:
        rank = 0
    return rank, candidate.priority


def collapse_campaign_rows(rows: List[Candidate], context: str) -> List[Candidate]:
    """
    Keep one row per candidate id, preserving first-seen order.

    Args:
        rows: Candidate rows, possibly one per attached campaign
        context: Current presentation context

    Returns:
        One Candidate per id
    """
    best: Dict[str, Candidate] = {}
    order: List[str] = []
    for row in rows:
        current = best.get(row.id)
        if current is None:
            best[row.id] = row
            order.append(row.id)
        elif _campaign_preference(row, context) > _campaign_preference(current, context):
            best[row.id] = row
    return [best[item_id] for item_id in order]


class CandidateRetrievalService:
    def __init__(self, candidate_store: CandidateStore):
        self.candidate_store = candidate_store

    @staticmethod
    def effective_service_type(rule: ContextRule, service_type: Optional[ServiceType]) -> ServiceType:
        return service_type or rule.default_service_type

    async def retrieve(
        self,
        context: str,
        rule: ContextRule,
        service_type: Optional[ServiceType],
        now: datetime,
    ) -> Optional[List[Candidate]]:
        """
        Retrieve candidates for `context`.

        Returns:
            List of candidates (possibly empty), or None if the store failed
        """
        effective = self.effective_service_type(rule, service_type)

        try:
            rows = await self.candidate_store.get_published_candidates(context, effective, now)
        except DependencyUnavailable as e:
            logger.warning(f"Candidate retrieval failed for context {context}, no recommendation: {e}")
            return None

        candidates = [
            c for c in rows
            if c.status == CandidateStatus.PUBLISHED
            and c.serves(effective)
        ]
        candidates = collapse_campaign_rows(candidates, context)

        logger.info(
            f"Retrieved {len(candidates)} candidates for context={context}, "
            f"service_type={effective.value}"
        )
        return candidates

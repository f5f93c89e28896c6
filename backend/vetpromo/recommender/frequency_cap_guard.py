"""
Frequency Cap Guard
===================

Drop candidates whose owner/pet already saw enough impressions.

Windows (counts of `impression` events):
- per_session: (owner, pet, context) since start of today
- per_week:    (owner, pet) over the trailing 7 days
- per_event:   (owner, pet, candidate, context) since start of today

Each cap is independently sufficient: the first breach (count >= cap) drops
the candidate. Caps are a soft UX throttle; two concurrent decisions can both
see "not yet breached". A counting failure means "not capped".
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.context_rules import ContextRule
from vetpromo.recommender.interfaces import EventStore
from vetpromo.recommender.models import ScoredCandidate
from vetpromo.schemas.candidate import Candidate, FrequencyCap

logger = logging.getLogger(__name__)

WEEK = timedelta(days=7)

_CountKey = Tuple[Optional[str], Optional[str], datetime]


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def effective_frequency_cap(candidate: Candidate, rule: ContextRule) -> FrequencyCap:
    """Campaign cap when the candidate has one, else the context rule cap."""
    return candidate.frequency_cap_override or rule.frequency_cap


class _CountCache:
    """Per-decision memo so shared windows are counted once."""

    def __init__(self, event_store: EventStore, owner_id: str, pet_id: str):
        self.event_store = event_store
        self.owner_id = owner_id
        self.pet_id = pet_id
        self._counts: Dict[_CountKey, int] = {}

    async def count(
        self,
        since: datetime,
        context: Optional[str] = None,
        candidate_id: Optional[str] = None
    ) -> int:
        key = (context, candidate_id, since)
        if key not in self._counts:
            self._counts[key] = await self.event_store.count_impressions(
                self.owner_id,
                self.pet_id,
                since,
                context=context,
                candidate_id=candidate_id,
            )
        return self._counts[key]


class FrequencyCapGuard:
    def __init__(self, event_store: EventStore):
        self.event_store = event_store

    async def _breach(
        self,
        counts: _CountCache,
        cap: FrequencyCap,
        candidate_id: str,
        context: str,
        now: datetime,
        include_per_event: bool,
    ) -> Optional[str]:
        """Name of the first breached cap, or None."""
        today = start_of_day(now)

        if cap.per_session and await counts.count(today, context=context) >= cap.per_session:
            return "per_session"

        if cap.per_week and await counts.count(now - WEEK) >= cap.per_week:
            return "per_week"

        if (
            include_per_event
            and cap.per_event
            and await counts.count(today, context=context, candidate_id=candidate_id) >= cap.per_event
        ):
            return "per_event"

        return None

    async def check(
        self,
        owner_id: str,
        pet_id: str,
        candidate_id: str,
        context: str,
        cap: FrequencyCap,
        now: datetime,
        include_per_event: bool = True,
        counts: Optional[_CountCache] = None,
    ) -> Optional[str]:
        """
        Evaluate one candidate's cap.

        Args:
            include_per_event: False on the AI shortlist fast path (session/week only)
            counts: Shared count memo for the current decision

        Returns:
            Breached cap name, or None (also when counting failed)
        """
        if cap.is_empty():
            return None
        counts = counts or _CountCache(self.event_store, owner_id, pet_id)
        try:
            return await self._breach(counts, cap, candidate_id, context, now, include_per_event)
        except DependencyUnavailable as e:
            logger.warning(
                f"Impression count failed for owner {owner_id}, pet {pet_id}, "
                f"item {candidate_id}; treating as not capped: {e}"
            )
            return None

    def new_count_cache(self, owner_id: str, pet_id: str) -> _CountCache:
        return _CountCache(self.event_store, owner_id, pet_id)

    async def apply(
        self,
        scored: List[ScoredCandidate],
        owner_id: str,
        pet_id: str,
        context: str,
        rule: ContextRule,
        now: datetime,
    ) -> List[ScoredCandidate]:
        """
        Keep candidates that are not capped.

        Returns:
            Surviving candidates, input order preserved
        """
        counts = self.new_count_cache(owner_id, pet_id)
        survivors = []

        for item in scored:
            cap = effective_frequency_cap(item.candidate, rule)
            breach = await self.check(owner_id, pet_id, item.item_id, context, cap, now, counts=counts)
            if breach:
                logger.debug(f"  Capped {item.item_id}: {breach}")
                continue
            survivors.append(item)

        logger.info(
            f"Frequency caps for pet {pet_id} in {context}: "
            f"{len(survivors)}/{len(scored)} not capped"
        )
        return survivors

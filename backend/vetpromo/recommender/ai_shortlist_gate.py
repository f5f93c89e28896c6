"""
AI Shortlist Gate
=================

Fast path that serves a previously computed, AI-ranked shortlist for the pet
when one is still valid, skipping the full pipeline.

Each entry is validated against:
1. The candidate still being published (phantom entries are invalid)
2. marketing_allowed for the candidate's tenant
3. The context's service type
4. The vet veto
5. Session / week frequency caps (per_event is not evaluated here)

clinical:* match reasons are reported only when high-sensitivity tags are
allowed for the consent and context.

One of the valid entries is picked with the daily rotation hash. If the
shortlist is non-empty but every entry is invalid, the cached shortlist is
cleared in the background and the caller falls through to the full pipeline.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from vetpromo.config import settings
from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.async_utils import bounded, fire_and_forget
from vetpromo.recommender.consent_resolver import marketing_allowed
from vetpromo.recommender.context_rules import ContextRule
from vetpromo.recommender.daily_rotation import pick_for_day
from vetpromo.recommender.eligibility_filter import EligibilityFilter, high_sensitivity_allowed
from vetpromo.recommender.frequency_cap_guard import FrequencyCapGuard
from vetpromo.recommender.interfaces import CandidateStore, ShortlistCache
from vetpromo.recommender.models import HIGH_SENSITIVITY_PREFIX, EffectiveConsent, Selection, SelectionSource
from vetpromo.recommender.presentation import build_selection
from vetpromo.schemas.candidate import Candidate, ServiceType
from vetpromo.schemas.pet import ShortlistEntry

logger = logging.getLogger(__name__)


class AIShortlistGate:
    def __init__(
        self,
        shortlist_cache: ShortlistCache,
        candidate_store: CandidateStore,
        eligibility_filter: EligibilityFilter,
        frequency_cap_guard: FrequencyCapGuard,
        timeout_seconds: Optional[float] = None
    ):
        self.shortlist_cache = shortlist_cache
        self.candidate_store = candidate_store
        self.eligibility_filter = eligibility_filter
        self.frequency_cap_guard = frequency_cap_guard
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.shortlist_timeout_seconds
        )

    async def _load_shortlist(self, pet_id: str) -> List[ShortlistEntry]:
        try:
            shortlist = await bounded(
                self.shortlist_cache.get_shortlist(pet_id),
                self.timeout_seconds,
                "shortlist_cache"
            )
        except DependencyUnavailable as e:
            logger.warning(f"Shortlist read failed for pet {pet_id}, using full pipeline: {e}")
            return []
        return shortlist or []

    async def _validate_entries(
        self,
        shortlist: List[ShortlistEntry],
        pet_id: str,
        owner_id: str,
        context: str,
        rule: ContextRule,
        service_type: ServiceType,
        consent: EffectiveConsent,
        now: datetime,
    ) -> Tuple[List[Tuple[ShortlistEntry, Candidate]], bool]:
        """
        Returns:
            (valid entries with their candidates, whether any lookup failed)
        """
        valid = []
        lookup_failed = False
        counts = self.frequency_cap_guard.new_count_cache(owner_id, pet_id)

        for entry in shortlist:
            try:
                candidate = await self.candidate_store.get_published_candidate(entry.candidate_id)
            except DependencyUnavailable as e:
                logger.warning(f"Shortlist item {entry.candidate_id} lookup failed, skipping: {e}")
                lookup_failed = True
                continue

            if candidate is None:
                logger.debug(f"  Shortlist item {entry.candidate_id} is no longer published")
                continue
            if not marketing_allowed(consent, candidate.tenant_id):
                continue
            if not candidate.serves(service_type):
                continue
            if await self.eligibility_filter.is_vetoed(pet_id, candidate.id):
                continue

            breach = await self.frequency_cap_guard.check(
                owner_id,
                pet_id,
                candidate.id,
                context,
                rule.frequency_cap,
                now,
                include_per_event=False,
                counts=counts,
            )
            if breach:
                continue

            valid.append((entry, candidate))

        return valid, lookup_failed

    def _invalidate_in_background(self, pet_id: str) -> None:
        fire_and_forget(
            self.shortlist_cache.invalidate_shortlist(pet_id),
            self.timeout_seconds,
            "shortlist_cache"
        )

    async def try_select(
        self,
        pet_id: str,
        owner_id: str,
        context: str,
        rule: ContextRule,
        service_type: ServiceType,
        consent: EffectiveConsent,
        now: datetime,
    ) -> Optional[Selection]:
        """
        Serve from the AI shortlist if possible.

        Only called in NORMAL mode.

        Returns:
            Selection with source=ai_recommendation, or None to fall through
        """
        shortlist = await self._load_shortlist(pet_id)
        if not shortlist:
            return None

        if not marketing_allowed(consent, None):
            logger.debug(f"Marketing disabled for owner {owner_id}, skipping shortlist")
            return None

        valid, lookup_failed = await self._validate_entries(
            shortlist, pet_id, owner_id, context, rule, service_type, consent, now
        )

        if not valid:
            if lookup_failed:
                logger.info(f"Shortlist for pet {pet_id} not usable right now, keeping cache")
            else:
                logger.warning(
                    f"All {len(shortlist)} shortlist entries invalid for pet {pet_id}, "
                    f"clearing stale shortlist"
                )
                self._invalidate_in_background(pet_id)
            return None

        entry, candidate = pick_for_day(valid, pet_id, now.date())
        reasons = entry.match_reasons
        if not high_sensitivity_allowed(consent, context):
            reasons = [r for r in reasons if not r.startswith(HIGH_SENSITIVITY_PREFIX)]
        logger.info(
            f"Selected {candidate.id} for pet {pet_id} from AI shortlist "
            f"({len(valid)}/{len(shortlist)} valid)"
        )
        return build_selection(candidate, reasons, SelectionSource.AI_RECOMMENDATION, context)

"""
Promo Selection Service
=======================

Entry point of the engine:

    select(pet_id, owner_id, context, service_type=None, mode=NORMAL) -> Selection | None

Pipeline:
AI shortlist (fast path) -> Consent -> Tag snapshot -> Candidate retrieval
-> Eligibility -> Frequency caps -> Ranking / tie-break

Every call is request scoped; the service holds no mutable state between
calls and performs no writes (clearing a stale AI shortlist is the only
best-effort side effect). Dependency failures never propagate: each stage
fails open or closed as documented on it, and `None` means "show nothing".
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.ai_shortlist_gate import AIShortlistGate
from vetpromo.recommender.candidate_retrieval_service import CandidateRetrievalService
from vetpromo.recommender.consent_resolver import ConsentResolver, marketing_allowed
from vetpromo.recommender.context_rules import get_context_rule, resolve_context
from vetpromo.recommender.eligibility_filter import EligibilityFilter
from vetpromo.recommender.frequency_cap_guard import FrequencyCapGuard
from vetpromo.recommender.interfaces import (
    CandidateStore,
    ConsentStore,
    EventStore,
    ShortlistCache,
    TagStore,
    VetFlagStore,
)
from vetpromo.recommender.models import DecisionMode, DecisionOutcome, Selection, SelectionSource
from vetpromo.recommender.presentation import build_selection
from vetpromo.recommender.ranking_service import RankingService
from vetpromo.recommender.tag_snapshot_reader import TagSnapshotReader
from vetpromo.schemas.candidate import ServiceType

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PromoSelectionService:
    """
    Compose the selection stages over the collaborator stores.
    """

    def __init__(
        self,
        consent_store: ConsentStore,
        tag_store: TagStore,
        candidate_store: CandidateStore,
        event_store: EventStore,
        vet_flag_store: VetFlagStore,
        shortlist_cache: ShortlistCache,
        clock: Callable[[], datetime] = utc_now,
        tag_compute_timeout_seconds: Optional[float] = None,
        shortlist_timeout_seconds: Optional[float] = None
    ):
        """
        Args:
            clock: Returns the current aware datetime; its date seeds the tie-break
            tag_compute_timeout_seconds: Bound on triggering tag computation
            shortlist_timeout_seconds: Bound on shortlist cache read / clear
        """
        self.clock = clock
        self.consent_resolver = ConsentResolver(consent_store)
        self.tag_reader = TagSnapshotReader(tag_store, tag_compute_timeout_seconds)
        self.candidate_retrieval = CandidateRetrievalService(candidate_store)
        self.eligibility_filter = EligibilityFilter(vet_flag_store)
        self.frequency_cap_guard = FrequencyCapGuard(event_store)
        self.ranking_service = RankingService()
        self.shortlist_gate = AIShortlistGate(
            shortlist_cache,
            candidate_store,
            self.eligibility_filter,
            self.frequency_cap_guard,
            shortlist_timeout_seconds
        )

        logger.info("PromoSelectionService initialized")

    @staticmethod
    def _log_outcome(
        pet_id: str,
        context: str,
        mode: DecisionMode,
        outcome: DecisionOutcome,
        selection: Optional[Selection] = None
    ) -> None:
        if selection is None:
            logger.info(
                f"No recommendation for pet {pet_id} in {context} "
                f"(mode={mode.value}, outcome={outcome.value})"
            )
        else:
            logger.info(
                f"Recommendation for pet {pet_id} in {context}: {selection.promo_item_id} "
                f"(source={selection.source.value}, mode={mode.value}, "
                f"matched_tags={selection.matched_tags})"
            )

    async def select(
        self,
        pet_id: str,
        owner_id: str,
        context: Optional[str] = None,
        service_type: Optional[Union[ServiceType, str]] = None,
        mode: DecisionMode = DecisionMode.NORMAL,
    ) -> Optional[Selection]:
        """
        Decide which item (if any) to show.

        Args:
            pet_id: Pet ID
            owner_id: Owner user ID
            context: Presentation context (default "home_feed")
            service_type: promo / nutrition / insurance (default: context rule's first)
            mode: DecisionMode.FORCED_PREVIEW is for operator tooling only

        Returns:
            Selection, or None meaning "show nothing"

        Raises:
            ValueError: If service_type is not a known service type
        """
        if service_type is not None and not isinstance(service_type, ServiceType):
            service_type = ServiceType(str(service_type).strip().lower())

        try:
            return await self._select(pet_id, owner_id, context, service_type, mode)
        except DependencyUnavailable as e:
            logger.error(f"Selection aborted for pet {pet_id}: {e}")
            return None

    async def _select(
        self,
        pet_id: str,
        owner_id: str,
        context: Optional[str],
        service_type: Optional[ServiceType],
        mode: DecisionMode,
    ) -> Optional[Selection]:
        now = self.clock()
        ctx = resolve_context(context)
        rule = get_context_rule(ctx)
        effective_service_type = self.candidate_retrieval.effective_service_type(rule, service_type)

        logger.info(
            f"Selecting for pet {pet_id}, owner {owner_id}: context={ctx}, "
            f"service_type={effective_service_type.value}, mode={mode.value}"
        )

        consent = None
        if mode == DecisionMode.NORMAL:
            consent = await self.consent_resolver.resolve(owner_id)

            selection = await self.shortlist_gate.try_select(
                pet_id, owner_id, ctx, rule, effective_service_type, consent, now
            )
            if selection is not None:
                self._log_outcome(pet_id, ctx, mode, DecisionOutcome.SELECTED, selection)
                return selection

            if not marketing_allowed(consent, None):
                self._log_outcome(pet_id, ctx, mode, DecisionOutcome.MARKETING_DISABLED)
                return None

        snapshot = await self.tag_reader.read(pet_id, owner_id)

        candidates = await self.candidate_retrieval.retrieve(ctx, rule, service_type, now)
        if candidates is None:
            self._log_outcome(pet_id, ctx, mode, DecisionOutcome.CANDIDATES_UNAVAILABLE)
            return None
        if not candidates:
            self._log_outcome(pet_id, ctx, mode, DecisionOutcome.NO_CANDIDATES)
            return None

        scored = await self.eligibility_filter.filter(
            candidates, pet_id, snapshot, consent, ctx, rule, mode
        )
        if not scored:
            self._log_outcome(pet_id, ctx, mode, DecisionOutcome.ALL_INELIGIBLE)
            return None

        if mode == DecisionMode.NORMAL:
            scored = await self.frequency_cap_guard.apply(scored, owner_id, pet_id, ctx, rule, now)
            if not scored:
                self._log_outcome(pet_id, ctx, mode, DecisionOutcome.ALL_CAPPED)
                return None

        ranked = self.ranking_service.select(scored, pet_id, now.date())
        winner = ranked.scored
        selection = build_selection(
            winner.candidate, winner.matched_tags, SelectionSource.ELIGIBILITY, ctx
        )
        self._log_outcome(pet_id, ctx, mode, DecisionOutcome.SELECTED, selection)
        return selection

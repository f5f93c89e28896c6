"""
Eligibility Filter
==================

Apply hard eligibility checks to retrieved candidates and compute the tag
match score of the survivors.

Checks (short-circuit on the first failure, in this order):
1. Brand consent for the candidate's primary service type
2. Species targeting
3. Lifecycle targeting
4. Context rule category allow-list
5. Campaign contexts
6. Active vet flag (clinical veto)
7. tags_exclude
8. Missing description

FORCED_PREVIEW skips 1-5 and 7. The vet veto and the description check are
not parameterised by mode.
"""

import logging
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.consent_resolver import brand_consent_allowed, clinical_tags_allowed
from vetpromo.recommender.context_rules import ContextRule, is_high_sensitivity_context
from vetpromo.recommender.interfaces import VetFlagStore
from vetpromo.recommender.models import (
    HIGH_SENSITIVITY_PREFIX,
    DecisionMode,
    EffectiveConsent,
    PetTagSnapshot,
    ScoredCandidate,
)
from vetpromo.schemas.candidate import Candidate

logger = logging.getLogger(__name__)

TARGET_ALL = "all"


def _targets(targets: Sequence[str], value: Optional[str]) -> bool:
    """Unknown pet value or untargeted candidate passes; otherwise need "all" or a match."""
    if value is None or not targets:
        return True
    return TARGET_ALL in targets or value in targets


def high_sensitivity_allowed(consent: Optional[EffectiveConsent], context: str) -> bool:
    """clinical:* tags count only with clinical consent and in a high-sensitivity context."""
    if consent is None:
        return False
    return clinical_tags_allowed(consent) and is_high_sensitivity_context(context)


def score_candidate(
    candidate: Candidate,
    snapshot: PetTagSnapshot,
    allow_high_sensitivity: bool
) -> Tuple[int, List[str]]:
    """
    Count tags_include entries carried by the pet.

    clinical:* entries are dropped first unless `allow_high_sensitivity`;
    this never excludes a candidate, it only stops those tags from scoring
    or being reported as matched.

    Returns:
        (match_score, matched_tags)
    """
    matched: List[str] = []
    for tag in candidate.tags_include:
        if tag.startswith(HIGH_SENSITIVITY_PREFIX) and not allow_high_sensitivity:
            continue
        if tag in snapshot.tags and tag not in matched:
            matched.append(tag)
    return len(matched), matched


class EligibilityFilter:
    def __init__(self, vet_flag_store: VetFlagStore):
        self.vet_flag_store = vet_flag_store

    def _targeting_exclusion(
        self,
        candidate: Candidate,
        snapshot: PetTagSnapshot,
        consent: EffectiveConsent,
        context: str,
        rule: ContextRule,
    ) -> Optional[str]:
        """Checks 1-5. Returns the failing check name, or None."""
        if not brand_consent_allowed(consent, candidate.primary_service_type, candidate.tenant_id):
            return "brand_consent"

        species = snapshot.species.value if snapshot.species else None
        if not _targets(candidate.species, species):
            return "species"

        lifecycle = snapshot.lifecycle_stage.value if snapshot.lifecycle_stage else None
        if not _targets(candidate.lifecycle_target, lifecycle):
            return "lifecycle"

        if not rule.allows_category(candidate.category):
            return "context_category"

        contexts = candidate.campaign_contexts
        if contexts and context not in contexts:
            return "campaign_context"

        return None

    async def is_vetoed(self, pet_id: str, candidate_id: str) -> bool:
        """
        Active vet flag for (pet, candidate).

        If the flag store is unavailable the veto is skipped for this single
        check and the gap is logged.
        """
        try:
            return await self.vet_flag_store.has_active_flag(pet_id, candidate_id)
        except DependencyUnavailable as e:
            logger.warning(
                f"Vet flag check unavailable for pet {pet_id}, item {candidate_id}; "
                f"veto NOT applied: {e}"
            )
            return False

    @staticmethod
    def _excluded_by_tags(candidate: Candidate, snapshot: PetTagSnapshot) -> bool:
        return any(tag in snapshot.tags for tag in candidate.tags_exclude)

    async def filter(
        self,
        candidates: List[Candidate],
        pet_id: str,
        snapshot: PetTagSnapshot,
        consent: Optional[EffectiveConsent],
        context: str,
        rule: ContextRule,
        mode: DecisionMode = DecisionMode.NORMAL,
    ) -> List[ScoredCandidate]:
        """
        Filter and score candidates.

        Args:
            candidates: Retrieved candidates
            pet_id: Pet ID
            snapshot: Pet tag snapshot
            consent: Effective consent (None in FORCED_PREVIEW)
            context: Presentation context
            rule: Context rule
            mode: Decision mode

        Returns:
            Surviving candidates with match scores, in input order
        """
        enforce_preferences = mode == DecisionMode.NORMAL
        allow_high_sensitivity = high_sensitivity_allowed(consent, context)
        exclusions: Counter = Counter()
        survivors: List[ScoredCandidate] = []

        for candidate in candidates:
            reason = None

            if enforce_preferences and consent is not None:
                reason = self._targeting_exclusion(candidate, snapshot, consent, context, rule)
            elif enforce_preferences:
                reason = "consent_missing"

            if reason is None and await self.is_vetoed(pet_id, candidate.id):
                reason = "vet_flag"

            if reason is None and enforce_preferences and self._excluded_by_tags(candidate, snapshot):
                reason = "tags_exclude"

            if reason is None and not candidate.has_description():
                reason = "missing_description"

            if reason is not None:
                exclusions[reason] += 1
                logger.debug(f"  Excluded {candidate.id}: {reason}")
                continue

            match_score, matched_tags = score_candidate(candidate, snapshot, allow_high_sensitivity)
            survivors.append(ScoredCandidate(candidate, match_score, matched_tags))

        logger.info(
            f"Eligibility for pet {pet_id}: {len(survivors)}/{len(candidates)} eligible "
            f"(mode={mode.value}, excluded={dict(exclusions) or 'none'})"
        )
        return survivors

"""
Ranking Service
===============

Rank eligible, uncapped candidates and pick exactly one.

Input: pet_id, day, candidates (List[ScoredCandidate])
Output: RankedItem for the winner, or None when nothing survived

Sort order:
1. priority      DESC
2. match_score   DESC
3. updated_at    DESC

The top tier is every candidate sharing the winner's (priority, match_score).
A multi-member tier is resolved by the daily rotation hash, so the choice is
stable for a pet on a given day and rotates across days and pets.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from vetpromo.recommender.daily_rotation import rotation_index
from vetpromo.recommender.models import ScoredCandidate

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class RankedItem:
    """
    Winning candidate with the tie-break details.

    Attributes:
        scored: The winning ScoredCandidate
        tier_size: Number of candidates tied at the top
        tier_index: Index chosen inside the tier (0 when tier_size == 1)
    """
    scored: ScoredCandidate
    tier_size: int
    tier_index: int


def _updated_at_key(item: ScoredCandidate) -> float:
    updated_at = item.candidate.updated_at
    if updated_at is None:
        return _EPOCH.timestamp()
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return updated_at.timestamp()


class RankingService:
    """Deterministic ranker + tie-breaker. Stateless."""

    @staticmethod
    def sort_candidates(candidates: List[ScoredCandidate]) -> List[ScoredCandidate]:
        return sorted(
            candidates,
            key=lambda c: (c.candidate.priority, c.match_score, _updated_at_key(c)),
            reverse=True
        )

    @staticmethod
    def top_tier(ranked: List[ScoredCandidate]) -> List[ScoredCandidate]:
        if not ranked:
            return []
        head = ranked[0]
        return [
            c for c in ranked
            if c.candidate.priority == head.candidate.priority and c.match_score == head.match_score
        ]

    def select(
        self,
        candidates: List[ScoredCandidate],
        pet_id: str,
        day: date
    ) -> Optional[RankedItem]:
        """
        Rank candidates and break ties.

        Args:
            candidates: Candidates that passed eligibility and frequency caps
            pet_id: Pet ID (tie-break seed)
            day: Calendar day (tie-break seed)

        Returns:
            RankedItem, or None if `candidates` is empty
        """
        if not candidates:
            return None

        ranked = self.sort_candidates(candidates)
        tier = self.top_tier(ranked)
        index = 0 if len(tier) == 1 else rotation_index(pet_id, day, len(tier))
        winner = tier[index]

        logger.info(
            f"Ranked {len(ranked)} candidates for pet {pet_id}: "
            f"top tier={len(tier)} (priority={winner.candidate.priority}, "
            f"match_score={winner.match_score}), picked index {index} -> {winner.item_id}"
        )
        return RankedItem(scored=winner, tier_size=len(tier), tier_index=index)

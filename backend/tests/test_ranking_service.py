from datetime import date, datetime, timezone

from tests.factories import make_candidate
from tests.test_daily_rotation import reference_hash
from vetpromo.recommender.models import ScoredCandidate
from vetpromo.recommender.ranking_service import RankingService

DAY = date(2024, 1, 15)


def _scored(item_id, priority=0, score=0, updated_at=None):
    return ScoredCandidate(make_candidate(item_id, priority=priority, updated_at=updated_at), score, [])


def test_sort_order_priority_then_score_then_recency():
    items = [
        _scored("low-priority", priority=1, score=5),
        _scored("old", priority=5, score=2, updated_at=datetime(2023, 1, 1, tzinfo=timezone.utc)),
        _scored("new", priority=5, score=2, updated_at=datetime(2023, 6, 1)),
        _scored("better-match", priority=5, score=3),
    ]

    ranked = RankingService.sort_candidates(items)

    assert [c.item_id for c in ranked] == ["better-match", "new", "old", "low-priority"]


def test_single_winner_needs_no_tie_break():
    ranked = RankingService().select([_scored("a", priority=2), _scored("b", priority=1)], "pet-123", DAY)

    assert ranked.scored.item_id == "a"
    assert (ranked.tier_size, ranked.tier_index) == (1, 0)


def test_tie_break_matches_reference_hash():
    newer = _scored("newer", priority=10, score=2, updated_at=datetime(2023, 12, 1, tzinfo=timezone.utc))
    older = _scored("older", priority=10, score=2, updated_at=datetime(2023, 11, 1, tzinfo=timezone.utc))
    tier = [newer, older]

    ranked = RankingService().select([older, newer], "pet-123", DAY)

    expected = tier[reference_hash("pet-1232024-01-15") % 2]
    assert ranked.tier_size == 2
    assert ranked.scored is expected
    assert ranked.scored.item_id == "older"


def test_tie_break_rotates_across_days():
    items = [
        _scored("newer", priority=10, score=2, updated_at=datetime(2023, 12, 1, tzinfo=timezone.utc)),
        _scored("older", priority=10, score=2, updated_at=datetime(2023, 11, 1, tzinfo=timezone.utc)),
    ]

    ranked = RankingService().select(items, "pet-123", date(2024, 1, 16))

    assert ranked.scored.item_id == "newer"


def test_empty_input():
    assert RankingService().select([], "pet-123", DAY) is None

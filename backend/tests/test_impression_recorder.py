import pytest

from tests.factories import OWNER_ID, PET_ID, make_candidate
from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.impression_recorder import ImpressionRecorder
from vetpromo.recommender.models import SelectionSource
from vetpromo.recommender.presentation import build_selection
from vetpromo.schemas.event import EventType
from vetpromo.storage.memory import InMemoryEventStore


class FlakyEventStore(InMemoryEventStore):
    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def record_event(self, event):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise DependencyUnavailable("event_store", "insert failed")
        await super().record_event(event)


def _selection():
    return build_selection(make_candidate("item-1"), [], SelectionSource.AI_RECOMMENDATION, "home_feed")


@pytest.mark.asyncio
async def test_records_impression_for_selection():
    store = InMemoryEventStore()

    assert await ImpressionRecorder(store).record_impression(_selection(), OWNER_ID, PET_ID)

    [event] = store.events
    assert event.event_type == EventType.IMPRESSION
    assert (event.owner_id, event.pet_id, event.promo_item_id) == (OWNER_ID, PET_ID, "item-1")
    assert event.context == "home_feed"
    assert event.metadata == {"source": "ai_recommendation"}


@pytest.mark.asyncio
async def test_retries_then_succeeds():
    store = FlakyEventStore(failures=2)

    assert await ImpressionRecorder(store, max_retries=3).record_impression(_selection(), OWNER_ID, PET_ID)
    assert store.attempts == 3
    assert len(store.events) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    store = FlakyEventStore(failures=5)

    assert not await ImpressionRecorder(store, max_retries=3).record_impression(_selection(), OWNER_ID, PET_ID)
    assert store.attempts == 3
    assert store.events == []

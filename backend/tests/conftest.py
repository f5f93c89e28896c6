import pytest

from tests.factories import NOW
from vetpromo.recommender.selection_service import PromoSelectionService
from vetpromo.storage.memory import (
    InMemoryCandidateStore,
    InMemoryConsentStore,
    InMemoryEventStore,
    InMemoryShortlistCache,
    InMemoryTagStore,
    InMemoryVetFlagStore,
)


class Stores:
    def __init__(self):
        self.consents = InMemoryConsentStore()
        self.tags = InMemoryTagStore(clock=lambda: NOW)
        self.candidates = InMemoryCandidateStore()
        self.events = InMemoryEventStore()
        self.vet_flags = InMemoryVetFlagStore()
        self.shortlists = InMemoryShortlistCache()


@pytest.fixture
def stores():
    return Stores()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def service(stores, clock):
    return PromoSelectionService(
        consent_store=stores.consents,
        tag_store=stores.tags,
        candidate_store=stores.candidates,
        event_store=stores.events,
        vet_flag_store=stores.vet_flags,
        shortlist_cache=stores.shortlists,
        clock=clock,
        tag_compute_timeout_seconds=1.0,
        shortlist_timeout_seconds=1.0,
    )

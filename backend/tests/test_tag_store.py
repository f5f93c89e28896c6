import pytest

from tests.factories import NOW, OWNER_ID, PET_ID, make_candidate
from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.models import SelectionSource
from vetpromo.recommender.selection_service import PromoSelectionService
from vetpromo.recommender.tag_snapshot_reader import TagSnapshotReader
from vetpromo.schemas.pet import Species
from vetpromo.storage import tag_store
from vetpromo.storage.tag_store import SqlTagStore

GOOD_PET = {
    "pet_id": PET_ID,
    "species": "cane",
    "breed": None,
    "birthdate": None,
    "weight_kg": 30,
    "extra_data": None,
}


class FakeSession:
    def __init__(self):
        self.executed = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def begin(self):
        return self

    async def execute(self, statement, params=None):
        self.executed.append(params)


def _install_tables(monkeypatch, pets=(), dictionary=(), changes=()):
    async def fake_fetch_all(session_factory, query, params, dependency):
        if "FROM pet_tags" in query:
            return []
        if "FROM pets" in query:
            return list(pets)
        if "FROM tag_dictionary" in query:
            return list(dictionary)
        if "FROM pet_changes" in query:
            return list(changes)
        return []

    async def fake_fetch_scalar(session_factory, query, params, dependency):
        return pets[0]["species"] if pets else None

    monkeypatch.setattr(tag_store, "fetch_all", fake_fetch_all)
    monkeypatch.setattr(tag_store, "fetch_scalar", fake_fetch_scalar)


def _store():
    session = FakeSession()
    return SqlTagStore(session_factory=lambda: session), session


@pytest.mark.asyncio
async def test_bad_dictionary_rows_are_skipped(monkeypatch):
    _install_tables(
        monkeypatch,
        pets=[GOOD_PET],
        dictionary=[
            {"tag": "clinical:cardiac", "derivation_rule": "{not json"},
            {"tag": "clinical:dental", "derivation_rule": '["keyword"]'},
            {"tag": "clinical:renal", "derivation_rule": '{"type": "keyword", "keywords": ["renal"]}'},
        ],
        changes=[{"record": "Chronic renal disease, stage 2"}],
    )
    store, session = _store()

    tags = await store.compute_tags(PET_ID, OWNER_ID)

    assert tags == ["species:dog", "size:large", "clinical:renal"]
    assert [p["tag"] for p in session.executed] == tags


@pytest.mark.asyncio
async def test_bad_pet_row_raises_dependency_unavailable(monkeypatch):
    _install_tables(monkeypatch, pets=[dict(GOOD_PET, birthdate="not-a-date")])
    store, session = _store()

    with pytest.raises(DependencyUnavailable):
        await store.compute_tags(PET_ID, OWNER_ID)
    assert session.executed == []


@pytest.mark.asyncio
async def test_bad_pet_row_gives_empty_snapshot(monkeypatch):
    _install_tables(monkeypatch, pets=[dict(GOOD_PET, extra_data="{not json")])
    store, _ = _store()

    snapshot = await TagSnapshotReader(store).read(PET_ID, OWNER_ID)

    assert snapshot.tags == frozenset()
    assert snapshot.species == Species.DOG


@pytest.mark.asyncio
async def test_select_falls_back_to_generic_candidate(monkeypatch, stores):
    _install_tables(
        monkeypatch,
        pets=[GOOD_PET],
        dictionary=[{"tag": "clinical:renal", "derivation_rule": "{not json"}],
    )
    store, _ = _store()
    stores.candidates.candidates = [make_candidate("generic")]
    service = PromoSelectionService(
        consent_store=stores.consents,
        tag_store=store,
        candidate_store=stores.candidates,
        event_store=stores.events,
        vet_flag_store=stores.vet_flags,
        shortlist_cache=stores.shortlists,
        clock=lambda: NOW,
        tag_compute_timeout_seconds=1.0,
        shortlist_timeout_seconds=1.0,
    )

    selection = await service.select(PET_ID, OWNER_ID, "home_feed")

    assert selection.source == SelectionSource.ELIGIBILITY
    assert selection.promo_item_id == "generic"

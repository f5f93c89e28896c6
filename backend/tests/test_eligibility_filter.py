import pytest

from tests.factories import PET_ID, make_campaign, make_candidate
from vetpromo.recommender.context_rules import get_context_rule
from vetpromo.recommender.eligibility_filter import EligibilityFilter, score_candidate
from vetpromo.recommender.models import DecisionMode, EffectiveConsent, PetTagSnapshot
from vetpromo.schemas.consent import ConsentStatus
from vetpromo.schemas.pet import LifecycleStage, Species
from vetpromo.storage.memory import InMemoryVetFlagStore

HOME = "home_feed"


def _snapshot(*tags, species=Species.DOG, stage=LifecycleStage.ADULT):
    return PetTagSnapshot(species=species, lifecycle_stage=stage, tags=frozenset(tags))


async def _filter(candidates, snapshot=None, consent=None, context=HOME, mode=DecisionMode.NORMAL, flags=()):
    eligibility = EligibilityFilter(InMemoryVetFlagStore(flags))
    if consent is None and mode == DecisionMode.NORMAL:
        consent = EffectiveConsent.defaults()
    return await eligibility.filter(
        candidates,
        PET_ID,
        snapshot or _snapshot(),
        consent,
        context,
        get_context_rule(context),
        mode,
    )


class TestChecks:
    @pytest.mark.asyncio
    async def test_targeting_checks(self):
        consent = EffectiveConsent.defaults()
        consent.brand_consents["brand-7"] = ConsentStatus.OPTED_OUT
        candidates = [
            make_candidate("ok", species=["dog"], lifecycle_target=["adult"]),
            make_candidate("all-species", species=["all"]),
            make_candidate("brand", tenant_id="brand-7"),
            make_candidate("cat-only", species=["cat"]),
            make_candidate("seniors", lifecycle_target=["senior"]),
            make_candidate("clinic-food", category="food_clinical"),
            make_candidate("visit-campaign", campaign=make_campaign(contexts=["post_visit"])),
        ]

        survivors = await _filter(candidates, consent=consent)

        assert [s.item_id for s in survivors] == ["ok", "all-species"]

    @pytest.mark.asyncio
    async def test_unknown_pet_attributes_do_not_exclude(self):
        snapshot = _snapshot(species=None, stage=None)

        survivors = await _filter(
            [make_candidate("a", species=["cat"], lifecycle_target=["puppy"])], snapshot=snapshot
        )

        assert [s.item_id for s in survivors] == ["a"]

    @pytest.mark.asyncio
    async def test_tags_exclude_and_missing_description(self):
        candidates = [
            make_candidate("excluded", tags_exclude=["clinical:renal"]),
            make_candidate("no-copy", description="  ", extended_description=None),
            make_candidate("long-copy", description=None, extended_description="Details"),
        ]

        survivors = await _filter(candidates, snapshot=_snapshot("clinical:renal"))

        assert [s.item_id for s in survivors] == ["long-copy"]

    @pytest.mark.asyncio
    async def test_vet_flag_vetoes(self):
        survivors = await _filter(
            [make_candidate("flagged"), make_candidate("fine")], flags=[(PET_ID, "flagged")]
        )

        assert [s.item_id for s in survivors] == ["fine"]

    @pytest.mark.asyncio
    async def test_vet_flag_store_failure_skips_veto(self):
        eligibility = EligibilityFilter(InMemoryVetFlagStore([(PET_ID, "flagged")]))
        eligibility.vet_flag_store.unavailable = True

        survivors = await eligibility.filter(
            [make_candidate("flagged")],
            PET_ID,
            _snapshot(),
            EffectiveConsent.defaults(),
            HOME,
            get_context_rule(HOME),
        )

        assert [s.item_id for s in survivors] == ["flagged"]


class TestForcedPreview:
    @pytest.mark.asyncio
    async def test_skips_preferences_but_not_veto_or_description(self):
        candidates = [
            make_candidate("cat-only", species=["cat"], category="food_clinical"),
            make_candidate("excluded", tags_exclude=["species:dog"]),
            make_candidate("flagged"),
            make_candidate("no-copy", description=None),
        ]

        survivors = await _filter(
            candidates,
            snapshot=_snapshot("species:dog"),
            mode=DecisionMode.FORCED_PREVIEW,
            flags=[(PET_ID, "flagged")],
        )

        assert [s.item_id for s in survivors] == ["cat-only", "excluded"]


class TestScoring:
    def test_counts_included_tags_once(self):
        candidate = make_candidate("a", tags_include=["size:large", "species:dog", "size:large", "lifecycle:senior"])

        score, matched = score_candidate(candidate, _snapshot("species:dog", "size:large"), False)

        assert score == 2
        assert matched == ["size:large", "species:dog"]

    @pytest.mark.asyncio
    async def test_clinical_tag_needs_consent_and_sensitive_context(self):
        candidate = make_candidate("renal", category="food_clinical", tags_include=["clinical:renal"])
        snapshot = _snapshot("clinical:renal")
        opted_in = EffectiveConsent.defaults()
        opted_in.clinical_tags = ConsentStatus.OPTED_IN

        without_consent = await _filter([candidate], snapshot, EffectiveConsent.defaults(), "post_visit")
        with_consent = await _filter([candidate], snapshot, opted_in, "post_visit")
        wrong_context = await _filter(
            [make_candidate("renal", category="food_general", tags_include=["clinical:renal"])],
            snapshot,
            opted_in,
            HOME,
        )

        assert (without_consent[0].match_score, without_consent[0].matched_tags) == (0, [])
        assert (with_consent[0].match_score, with_consent[0].matched_tags) == (1, ["clinical:renal"])
        assert (wrong_context[0].match_score, wrong_context[0].matched_tags) == (0, [])

from datetime import datetime, timezone

from vetpromo.schemas.candidate import CampaignOverride, Candidate, FrequencyCap
from vetpromo.schemas.consent import ConsentRecord, ConsentStatus, ConsentType
from vetpromo.schemas.event import ImpressionEvent
from vetpromo.schemas.pet import PetTag

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

OWNER_ID = "owner-1"
PET_ID = "pet-123"


def make_candidate(item_id: str, **overrides) -> Candidate:
    data = {
        "id": item_id,
        "tenant_id": "brand-1",
        "name": f"Item {item_id}",
        "category": "food_general",
        "description": "Complete food for adult dogs",
        "product_url": f"https://shop.example.com/items/{item_id}",
        "priority": 0,
    }
    data.update(overrides)
    return Candidate(**data)


def make_campaign(campaign_id: str = "camp-1", contexts=(), utm_campaign=None, **cap) -> CampaignOverride:
    return CampaignOverride(
        campaign_id=campaign_id,
        contexts=list(contexts),
        utm_campaign=utm_campaign,
        frequency_cap=FrequencyCap(**cap) if cap else None,
    )


def make_consent(
    consent_type: ConsentType,
    status: ConsentStatus,
    scope: str = "global",
    owner_id: str = OWNER_ID,
) -> ConsentRecord:
    return ConsentRecord(owner_id=owner_id, consent_type=consent_type, scope=scope, status=status)


def make_tags(*tags: str, computed_at: datetime = NOW):
    return [PetTag(tag=t, computed_at=computed_at) for t in tags]


def make_impression(
    context: str = "home_feed",
    promo_item_id: str = None,
    occurred_at: datetime = NOW,
    owner_id: str = OWNER_ID,
    pet_id: str = PET_ID,
) -> ImpressionEvent:
    return ImpressionEvent(
        owner_id=owner_id,
        pet_id=pet_id,
        promo_item_id=promo_item_id,
        context=context,
        occurred_at=occurred_at,
    )

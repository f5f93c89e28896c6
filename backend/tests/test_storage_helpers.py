from vetpromo.storage.candidate_store import candidate_from_row
from vetpromo.storage.database import mask_url, normalize_database_url


def test_normalize_database_url():
    assert normalize_database_url("postgres://u:p@db/vet") == "postgresql+asyncpg://u:p@db/vet"
    assert normalize_database_url("postgresql://u:p@db/vet") == "postgresql+asyncpg://u:p@db/vet"
    assert normalize_database_url("postgresql+asyncpg://u:p@db/vet") == "postgresql+asyncpg://u:p@db/vet"


def test_mask_url_hides_password():
    assert mask_url("postgresql+asyncpg://vet:secret@db:5432/vet") == "postgresql+asyncpg://vet:***@db:5432/vet"
    assert mask_url("sqlite+aiosqlite:///local.db") == "sqlite+aiosqlite:///local.db"


def test_candidate_row_without_campaign():
    candidate = candidate_from_row({
        "promo_item_id": "a",
        "status": "published",
        "campaign_id": None,
        "frequency_cap": None,
        "utm_campaign": None,
        "contexts": None,
    })

    assert candidate.id == "a"
    assert candidate.campaign is None


def test_candidate_row_with_campaign():
    candidate = candidate_from_row({
        "promo_item_id": "a",
        "campaign_id": "c-1",
        "frequency_cap": {"per_session": 1},
        "utm_campaign": "spring",
        "contexts": ["home_feed"],
    })

    assert candidate.campaign.campaign_id == "c-1"
    assert candidate.frequency_cap_override.per_session == 1


def test_unreadable_row_is_skipped():
    assert candidate_from_row({"promo_item_id": "a", "status": "archived"}) is None

from urllib.parse import parse_qs, urlparse

from tests.factories import make_campaign, make_candidate
from vetpromo.recommender.models import SelectionSource
from vetpromo.recommender.presentation import build_cta_url, build_selection, campaign_utm


def test_cta_url_appends_utm_params():
    candidate = make_candidate("item-1", product_url="https://shop.example.com/p/1")

    url = urlparse(build_cta_url(candidate, "spring"))

    assert parse_qs(url.query) == {
        "utm_source": ["ada"],
        "utm_medium": ["promo"],
        "utm_campaign": ["spring"],
        "utm_content": ["item-1"],
    }


def test_cta_url_keeps_existing_query():
    candidate = make_candidate("item-1", product_url="https://shop.example.com/p/1?ref=vet")

    url = build_cta_url(candidate, "default")

    assert url.startswith("https://shop.example.com/p/1?ref=vet&utm_source=")


def test_no_product_url_means_no_cta():
    assert build_cta_url(make_candidate("item-1", product_url=None), "default") is None


def test_campaign_utm_fallbacks():
    assert campaign_utm(make_candidate("a")) == "default"
    assert campaign_utm(make_candidate("a", campaign=make_campaign("camp-9"))) == "camp-9"
    assert campaign_utm(make_candidate("a", campaign=make_campaign("camp-9", utm_campaign="fall"))) == "fall"


def test_build_selection_copies_presentation_fields():
    candidate = make_candidate("item-1", image_url="https://cdn.example.com/1.png", category="accessory")

    selection = build_selection(candidate, ["species:dog"], SelectionSource.ELIGIBILITY, "pet_profile")

    assert selection.promo_item_id == "item-1"
    assert selection.tenant_id == "brand-1"
    assert selection.category == "accessory"
    assert selection.name == "Item item-1"
    assert selection.image_url == "https://cdn.example.com/1.png"
    assert selection.context == "pet_profile"
    assert selection.matched_tags == ["species:dog"]

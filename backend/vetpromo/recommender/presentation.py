"""
Build the Selection returned to callers (CTA URL with UTM tracking).
"""
from typing import List, Optional
from urllib.parse import urlencode

from vetpromo.config import settings
from vetpromo.recommender.models import Selection, SelectionSource
from vetpromo.schemas.candidate import Candidate

UTM_MEDIUM = "promo"
DEFAULT_UTM_CAMPAIGN = "default"


def build_cta_url(candidate: Candidate, utm_campaign: str) -> Optional[str]:
    """Product URL with utm_* params appended, or None without a product URL."""
    if not candidate.product_url:
        return None
    params = urlencode({
        "utm_source": settings.utm_source,
        "utm_medium": UTM_MEDIUM,
        "utm_campaign": utm_campaign,
        "utm_content": candidate.id,
    })
    separator = "&" if "?" in candidate.product_url else "?"
    return f"{candidate.product_url}{separator}{params}"


def campaign_utm(candidate: Candidate) -> str:
    campaign = candidate.campaign
    if campaign is None:
        return DEFAULT_UTM_CAMPAIGN
    return campaign.utm_campaign or campaign.campaign_id or DEFAULT_UTM_CAMPAIGN


def build_selection(
    candidate: Candidate,
    matched_tags: List[str],
    source: SelectionSource,
    context: str,
) -> Selection:
    if source == SelectionSource.AI_RECOMMENDATION:
        utm_campaign = SelectionSource.AI_RECOMMENDATION.value
    else:
        utm_campaign = campaign_utm(candidate)

    return Selection(
        promo_item_id=candidate.id,
        tenant_id=candidate.tenant_id,
        category=candidate.category,
        matched_tags=list(matched_tags),
        source=source,
        context=context,
        name=candidate.name,
        description=candidate.description,
        image_url=candidate.image_url,
        cta_url=build_cta_url(candidate, utm_campaign),
    )

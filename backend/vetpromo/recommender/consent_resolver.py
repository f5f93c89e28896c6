"""
Consent Resolver
================

Fold an owner's consent rows into an EffectiveConsent view.

Hierarchy:
- marketing_global not opted_in -> nothing is shown
- marketing_global opted_in + marketing_brand opted_out/pending for tenant X -> nothing from X
- clinical_tags not opted_in -> clinical:* tags never influence matching
- nutrition / insurance items additionally need nutrition_plan /
  insurance_data_sharing plus their own brand maps

Missing global rows fall back to DEFAULT_CONSENT_STATUS (opted_in for general
marketing, opted_out for everything else). A brand with no row is left out of
the brand maps and follows its global switch.
"""

import logging
from typing import Dict, Optional

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.interfaces import ConsentStore
from vetpromo.recommender.models import EffectiveConsent
from vetpromo.schemas.candidate import ServiceType
from vetpromo.schemas.consent import GLOBAL_SCOPE, ConsentStatus, ConsentType

logger = logging.getLogger(__name__)

_BLOCKING_BRAND_STATUSES = (ConsentStatus.OPTED_OUT, ConsentStatus.PENDING)

# consent_type (global scope) -> EffectiveConsent attribute
_GLOBAL_FIELDS = {
    ConsentType.MARKETING_GLOBAL: "marketing_global",
    ConsentType.CLINICAL_TAGS: "clinical_tags",
    ConsentType.NUTRITION_PLAN: "nutrition_plan",
    ConsentType.INSURANCE_DATA_SHARING: "insurance_data_sharing",
}

# consent_type (brand scope) -> EffectiveConsent brand map attribute
_BRAND_FIELDS = {
    ConsentType.MARKETING_BRAND: "brand_consents",
    ConsentType.NUTRITION_BRAND: "nutrition_brand_consents",
    ConsentType.INSURANCE_BRAND: "insurance_brand_consents",
}


class ConsentResolver:
    """Resolve effective consent for an owner. No side effects."""

    def __init__(self, consent_store: ConsentStore):
        self.consent_store = consent_store

    async def resolve(self, owner_id: str) -> EffectiveConsent:
        """
        Read all consent rows for the owner in one query and fold them.

        Args:
            owner_id: Owner user ID

        Returns:
            EffectiveConsent; the all-defaults view if the store is unavailable
        """
        consent = EffectiveConsent.defaults()

        try:
            rows = await self.consent_store.get_consent_rows(owner_id)
        except DependencyUnavailable as e:
            logger.warning(f"Consent lookup failed for owner {owner_id}, using defaults: {e}")
            return consent

        for row in rows:
            if row.consent_type in _GLOBAL_FIELDS:
                if row.scope != GLOBAL_SCOPE:
                    logger.debug(
                        f"Ignoring {row.consent_type.value} row with non-global scope "
                        f"{row.scope} for owner {owner_id}"
                    )
                    continue
                setattr(consent, _GLOBAL_FIELDS[row.consent_type], row.status)
            elif row.consent_type in _BRAND_FIELDS:
                brand_map = getattr(consent, _BRAND_FIELDS[row.consent_type])
                brand_map[row.scope] = row.status

        logger.debug(
            f"Effective consent for owner {owner_id}: "
            f"marketing_global={consent.marketing_global.value}, "
            f"clinical_tags={consent.clinical_tags.value}, "
            f"brands={len(consent.brand_consents)}"
        )
        return consent


def _gate(
    global_status: ConsentStatus,
    brand_map: Dict[str, ConsentStatus],
    tenant_id: Optional[str],
) -> bool:
    if global_status != ConsentStatus.OPTED_IN:
        return False
    if tenant_id and brand_map.get(tenant_id) in _BLOCKING_BRAND_STATUSES:
        return False
    return True


def marketing_allowed(consent: EffectiveConsent, tenant_id: Optional[str] = None) -> bool:
    """False if marketing_global is not opted_in or the brand is opted_out/pending."""
    return _gate(consent.marketing_global, consent.brand_consents, tenant_id)


def nutrition_allowed(consent: EffectiveConsent, tenant_id: Optional[str] = None) -> bool:
    return _gate(consent.nutrition_plan, consent.nutrition_brand_consents, tenant_id)


def insurance_allowed(consent: EffectiveConsent, tenant_id: Optional[str] = None) -> bool:
    return _gate(consent.insurance_data_sharing, consent.insurance_brand_consents, tenant_id)


def clinical_tags_allowed(consent: EffectiveConsent) -> bool:
    return consent.clinical_tags == ConsentStatus.OPTED_IN


def brand_consent_allowed(
    consent: EffectiveConsent,
    service_type: ServiceType,
    tenant_id: Optional[str],
) -> bool:
    """Pick the brand gate matching a candidate's primary service type."""
    if service_type == ServiceType.NUTRITION:
        return nutrition_allowed(consent, tenant_id)
    if service_type == ServiceType.INSURANCE:
        return insurance_allowed(consent, tenant_id)
    return marketing_allowed(consent, tenant_id)

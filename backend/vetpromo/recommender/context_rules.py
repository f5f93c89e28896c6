"""
Context rules: which categories are allowed, default frequency caps and the
service types served in each presentation context.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from vetpromo.schemas.candidate import FrequencyCap, ServiceType

DEFAULT_CONTEXT = "home_feed"

# Contexts in which clinical:* tags may influence scoring (with consent).
HIGH_SENSITIVITY_CONTEXTS: FrozenSet[str] = frozenset({"post_visit", "post_vaccination"})


@dataclass(frozen=True)
class ContextRule:
    """
    Attributes:
        allowed_categories: None means any category, narrowed only by tag matching
        frequency_cap: Default cap when the candidate has no campaign cap
        allowed_service_types: First entry is the default service type
    """
    allowed_categories: Optional[Tuple[str, ...]]
    frequency_cap: FrequencyCap
    allowed_service_types: Tuple[ServiceType, ...] = (ServiceType.PROMO,)

    @property
    def default_service_type(self) -> ServiceType:
        return self.allowed_service_types[0] if self.allowed_service_types else ServiceType.PROMO

    def allows_category(self, category: Optional[str]) -> bool:
        if self.allowed_categories is None:
            return True
        return category in self.allowed_categories


CONTEXT_RULES: Dict[str, ContextRule] = {
    "post_visit": ContextRule(
        allowed_categories=("food_clinical", "supplement"),
        frequency_cap=FrequencyCap(per_event=1),
    ),
    "post_vaccination": ContextRule(
        allowed_categories=("antiparasitic", "accessory"),
        frequency_cap=FrequencyCap(per_event=1),
    ),
    "home_feed": ContextRule(
        allowed_categories=("food_general", "accessory", "service"),
        frequency_cap=FrequencyCap(per_session=2, per_week=4),
    ),
    "pet_profile": ContextRule(
        allowed_categories=("food_general", "accessory"),
        frequency_cap=FrequencyCap(per_session=1),
    ),
    "faq_view": ContextRule(
        allowed_categories=None,
        frequency_cap=FrequencyCap(per_session=1),
    ),
    "milestone": ContextRule(
        allowed_categories=("food_general", "service"),
        frequency_cap=FrequencyCap(per_event=1),
    ),
    "nutrition_review": ContextRule(
        allowed_categories=("food_clinical", "food_general", "supplement"),
        frequency_cap=FrequencyCap(per_session=1),
        allowed_service_types=(ServiceType.NUTRITION,),
    ),
    "insurance_review": ContextRule(
        allowed_categories=("service",),
        frequency_cap=FrequencyCap(per_session=1),
        allowed_service_types=(ServiceType.INSURANCE,),
    ),
}


def resolve_context(context: Optional[str]) -> str:
    """Missing context means the home feed; other strings are kept as given."""
    if not context or not context.strip():
        return DEFAULT_CONTEXT
    return context.strip()


def get_context_rule(context: str) -> ContextRule:
    """Rule for `context`; unknown contexts get the home feed rule."""
    return CONTEXT_RULES.get(context, CONTEXT_RULES[DEFAULT_CONTEXT])


def is_high_sensitivity_context(context: str) -> bool:
    return context in HIGH_SENSITIVITY_CONTEXTS

"""
Request-scoped types passed between the selection stages.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from vetpromo.schemas.candidate import Candidate
from vetpromo.schemas.consent import DEFAULT_CONSENT_STATUS, ConsentStatus, ConsentType
from vetpromo.schemas.pet import LifecycleStage, Species

HIGH_SENSITIVITY_PREFIX = "clinical:"


class DecisionMode(str, Enum):
    """
    NORMAL for every end-user path. FORCED_PREVIEW is operator-only: it skips
    consent / targeting / exclusion checks and frequency capping, but never
    the vet veto.
    """
    NORMAL = "normal"
    FORCED_PREVIEW = "forced_preview"


class SelectionSource(str, Enum):
    AI_RECOMMENDATION = "ai_recommendation"
    ELIGIBILITY = "eligibility"


class DecisionOutcome(str, Enum):
    """Why a decision ended where it did (logged, never raised)."""
    SELECTED = "selected"
    MARKETING_DISABLED = "marketing_disabled"
    CANDIDATES_UNAVAILABLE = "candidates_unavailable"
    NO_CANDIDATES = "no_candidates"
    ALL_INELIGIBLE = "all_ineligible"
    ALL_CAPPED = "all_capped"


@dataclass
class EffectiveConsent:
    """
    Resolved consent view for one owner. Recomputed on every decision.

    Brand maps hold only explicit records; a brand without an entry is
    governed by the global switch alone.
    """
    marketing_global: ConsentStatus = DEFAULT_CONSENT_STATUS[ConsentType.MARKETING_GLOBAL]
    clinical_tags: ConsentStatus = DEFAULT_CONSENT_STATUS[ConsentType.CLINICAL_TAGS]
    nutrition_plan: ConsentStatus = DEFAULT_CONSENT_STATUS[ConsentType.NUTRITION_PLAN]
    insurance_data_sharing: ConsentStatus = DEFAULT_CONSENT_STATUS[ConsentType.INSURANCE_DATA_SHARING]
    brand_consents: Dict[str, ConsentStatus] = field(default_factory=dict)
    nutrition_brand_consents: Dict[str, ConsentStatus] = field(default_factory=dict)
    insurance_brand_consents: Dict[str, ConsentStatus] = field(default_factory=dict)

    @classmethod
    def defaults(cls) -> "EffectiveConsent":
        return cls()


@dataclass(frozen=True)
class PetTagSnapshot:
    species: Optional[Species] = None
    lifecycle_stage: Optional[LifecycleStage] = None
    tags: FrozenSet[str] = frozenset()

    @classmethod
    def empty(cls) -> "PetTagSnapshot":
        return cls()


@dataclass
class ScoredCandidate:
    """
    Candidate that survived eligibility.

    Attributes:
        candidate: The candidate row
        match_score: Number of effective tags_include entries the pet carries
        matched_tags: Those entries, in tags_include order
    """
    candidate: Candidate
    match_score: int = 0
    matched_tags: List[str] = field(default_factory=list)

    @property
    def item_id(self) -> str:
        return self.candidate.id


@dataclass
class Selection:
    """
    Engine output. Never persisted by the engine; the caller may record it as
    an impression.
    """
    promo_item_id: str
    tenant_id: Optional[str]
    category: Optional[str]
    matched_tags: List[str]
    source: SelectionSource
    context: str
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    cta_url: Optional[str] = None

"""
Candidate (promo item) schemas.

Array / object columns are stored as loosely-typed JSON; they are coerced and
validated into closed enums here so nothing untyped reaches the pipeline.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vetpromo.schemas._coercion import as_list, as_mapping


class ServiceType(str, Enum):
    PROMO = "promo"
    NUTRITION = "nutrition"
    INSURANCE = "insurance"


class CandidateStatus(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"


class FrequencyCap(BaseModel):
    """
    Frequency cap (counts, not durations). None or 0 means "not set".
    """
    per_session: Optional[int] = Field(None, ge=0)
    per_week: Optional[int] = Field(None, ge=0)
    per_event: Optional[int] = Field(None, ge=0)

    def is_empty(self) -> bool:
        return not (self.per_session or self.per_week or self.per_event)


class CampaignOverride(BaseModel):
    """
    Active, date-bounded campaign attached to a candidate.

    Attributes:
        campaign_id: Campaign ID
        frequency_cap: Overrides the context rule cap when set
        contexts: If non-empty, restricts the candidate to these contexts
        utm_campaign: UTM campaign value for the CTA URL
    """
    campaign_id: str
    frequency_cap: Optional[FrequencyCap] = None
    contexts: List[str] = Field(default_factory=list)
    utm_campaign: Optional[str] = None

    @field_validator("campaign_id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("frequency_cap", mode="before")
    @classmethod
    def _decode_cap(cls, value):
        return as_mapping(value)

    @field_validator("contexts", mode="before")
    @classmethod
    def _decode_contexts(cls, value):
        return as_list(value)


class Candidate(BaseModel):
    """
    A promotable third-party item (product, nutrition plan, insurance offer).
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="promo_item_id", description="Promo item ID")
    tenant_id: Optional[str] = Field(None, description="Brand / tenant ID")
    name: Optional[str] = None
    category: Optional[str] = None
    service_types: List[ServiceType] = Field(default_factory=list, alias="service_type")
    species: List[str] = Field(default_factory=list)
    lifecycle_target: List[str] = Field(default_factory=list)
    tags_include: List[str] = Field(default_factory=list)
    tags_exclude: List[str] = Field(default_factory=list)
    priority: int = 0
    description: Optional[str] = None
    extended_description: Optional[str] = None
    status: CandidateStatus = CandidateStatus.PUBLISHED
    updated_at: Optional[datetime] = None
    product_url: Optional[str] = None
    image_url: Optional[str] = None
    campaign: Optional[CampaignOverride] = None

    @field_validator("id", "tenant_id", mode="before")
    @classmethod
    def _ids_to_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("species", "lifecycle_target", "tags_include", "tags_exclude", mode="before")
    @classmethod
    def _decode_string_lists(cls, value):
        return [str(v).strip() for v in as_list(value) if v is not None]

    @field_validator("species", "lifecycle_target", mode="after")
    @classmethod
    def _lowercase_targets(cls, value):
        return [v.lower() for v in value if v]

    @field_validator("service_types", mode="before")
    @classmethod
    def _decode_service_types(cls, value):
        return [str(v).strip().lower() for v in as_list(value)]

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_default(cls, value):
        return 0 if value is None else value

    @property
    def primary_service_type(self) -> ServiceType:
        """First declared service type; items without one are plain promos."""
        return self.service_types[0] if self.service_types else ServiceType.PROMO

    def serves(self, service_type: ServiceType) -> bool:
        return service_type in (self.service_types or [ServiceType.PROMO])

    @property
    def frequency_cap_override(self) -> Optional[FrequencyCap]:
        if self.campaign and self.campaign.frequency_cap and not self.campaign.frequency_cap.is_empty():
            return self.campaign.frequency_cap
        return None

    @property
    def campaign_contexts(self) -> List[str]:
        return self.campaign.contexts if self.campaign else []

    def has_description(self) -> bool:
        return bool((self.description or "").strip() or (self.extended_description or "").strip())

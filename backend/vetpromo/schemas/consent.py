"""
Consent schemas.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


GLOBAL_SCOPE = "global"


class ConsentType(str, Enum):
    """Consent types as stored in the consents table."""
    MARKETING_GLOBAL = "marketing_global"
    MARKETING_BRAND = "marketing_brand"
    CLINICAL_TAGS = "clinical_tags"
    NUTRITION_PLAN = "nutrition_plan"
    NUTRITION_BRAND = "nutrition_brand"
    INSURANCE_DATA_SHARING = "insurance_data_sharing"
    INSURANCE_BRAND = "insurance_brand"


class ConsentStatus(str, Enum):
    OPTED_IN = "opted_in"
    OPTED_OUT = "opted_out"
    PENDING = "pending"


# Status implied by a missing global-scope record. A brand without a record is
# governed by the matching global switch alone.
DEFAULT_CONSENT_STATUS = {
    ConsentType.MARKETING_GLOBAL: ConsentStatus.OPTED_IN,
    ConsentType.CLINICAL_TAGS: ConsentStatus.OPTED_OUT,
    ConsentType.NUTRITION_PLAN: ConsentStatus.OPTED_OUT,
    ConsentType.INSURANCE_DATA_SHARING: ConsentStatus.OPTED_OUT,
}


class ConsentRecord(BaseModel):
    """
    One row of the consents table.

    Attributes:
        owner_id: Owner user ID
        consent_type: Consent type
        scope: "global" or a brand/tenant ID
        status: Current status
        updated_at: Last change timestamp (optional)
    """
    owner_id: str = Field(..., description="Owner user ID")
    consent_type: ConsentType = Field(..., description="Consent type")
    scope: str = Field(GLOBAL_SCOPE, description="'global' or a tenant ID")
    status: ConsentStatus = Field(..., description="Consent status")
    updated_at: Optional[datetime] = None

    @field_validator("owner_id", mode="before")
    @classmethod
    def _owner_to_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("scope", mode="before")
    @classmethod
    def _default_scope(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return GLOBAL_SCOPE
        return str(value).strip()


class ConsentChange(BaseModel):
    """
    Write-path request for upsert_consent (not used by selection).
    """
    owner_id: str
    consent_type: ConsentType
    scope: str = GLOBAL_SCOPE
    status: ConsentStatus
    changed_by: Optional[str] = Field(None, description="User who made the change")
    ip_address: Optional[str] = Field(None, description="Client IP for the audit trail")

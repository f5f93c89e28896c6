"""
Promo event schemas (frequency-cap ledger).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class EventType(str, Enum):
    """Event types as stored in promo_events.event_type."""
    IMPRESSION = "impression"
    CTA_CLICK = "cta_click"
    INFO_CLICK = "info_click"
    DETAIL_VIEW = "detail_view"
    DISMISSED = "dismissed"


class ImpressionEvent(BaseModel):
    """
    Append-only promo event. Only `impression` rows count towards caps.

    Attributes:
        owner_id: Owner user ID
        pet_id: Pet ID
        promo_item_id: Promo item shown (optional)
        event_type: Event type
        context: Presentation context
        occurred_at: Event timestamp (UTC)
        metadata: Optional metadata (JSONB)
    """
    owner_id: str
    pet_id: str
    promo_item_id: Optional[str] = None
    event_type: EventType = EventType.IMPRESSION
    context: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("owner_id", "pet_id", "promo_item_id", mode="before")
    @classmethod
    def _ids_to_str(cls, value):
        return str(value) if value is not None else value

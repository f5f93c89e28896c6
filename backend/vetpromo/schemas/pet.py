"""
Pet-side schemas: tags, AI shortlist entries, tagging inputs.
"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vetpromo.schemas._coercion import as_list, as_mapping


class Species(str, Enum):
    DOG = "dog"
    CAT = "cat"
    RABBIT = "rabbit"
    FERRET = "ferret"
    BIRD = "bird"
    REPTILE = "reptile"


class LifecycleStage(str, Enum):
    PUPPY = "puppy"
    ADULT = "adult"
    SENIOR = "senior"


class VetFlagStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class PetTag(BaseModel):
    """
    One row of pet_tags.

    Attributes:
        tag: Tag string (e.g. "lifecycle:adult", "clinical:renal")
        value: Optional tag value
        computed_at: When the tag was (re)computed
    """
    tag: str
    value: Optional[str] = None
    computed_at: Optional[datetime] = None

    @field_validator("value", mode="before")
    @classmethod
    def _value_to_str(cls, value):
        return str(value) if value is not None else value


class ShortlistEntry(BaseModel):
    """
    One entry of the out-of-band AI-ranked shortlist for a pet.

    The producer writes `promo_item_id` / `key_matches`; both spellings load.
    """
    model_config = ConfigDict(populate_by_name=True)

    candidate_id: str = Field(..., alias="promo_item_id")
    match_reasons: List[str] = Field(default_factory=list, alias="key_matches")

    @field_validator("candidate_id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("match_reasons", mode="before")
    @classmethod
    def _decode_reasons(cls, value):
        return [str(v) for v in as_list(value)]


class PetProfile(BaseModel):
    """
    Pet attributes used by deterministic tag computation.
    """
    pet_id: str
    species: Optional[str] = None
    breed: Optional[str] = None
    birthdate: Optional[date] = None
    weight_kg: Optional[float] = None
    extra_data: Optional[Dict[str, Any]] = None

    @field_validator("pet_id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("birthdate", mode="before")
    @classmethod
    def _datetime_to_date(cls, value):
        if isinstance(value, datetime):
            return value.date()
        return value

    @field_validator("extra_data", mode="before")
    @classmethod
    def _decode_extra(cls, value):
        return as_mapping(value)


class ClinicalTagRule(BaseModel):
    """
    High-sensitivity tag dictionary entry with a keyword derivation rule.
    """
    tag: str
    keywords: List[str] = Field(default_factory=list)

    @field_validator("keywords", mode="before")
    @classmethod
    def _decode_keywords(cls, value):
        return [str(v) for v in as_list(value) if v]

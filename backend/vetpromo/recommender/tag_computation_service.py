"""
Tag Computation Service
=======================

Deterministic pet tags (no model, no randomness):

- species:*    from the normalized species
- size:*       dogs only, by weight (<10 kg small, <25 kg medium, else large)
- lifecycle:*  puppy under one year, senior past a species / size threshold
- clinical:*   high-sensitivity tags whose dictionary keywords appear in the
               pet's recent clinical text
"""

import json
import logging
from datetime import date
from typing import Iterable, List, Optional

from vetpromo.recommender.tag_snapshot_reader import normalize_species
from vetpromo.schemas.pet import ClinicalTagRule, LifecycleStage, PetProfile, Species

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25

SMALL_DOG_MAX_KG = 10
MEDIUM_DOG_MAX_KG = 25

DEFAULT_SENIOR_AGE = 7
CAT_SENIOR_AGE = 10
DOG_SENIOR_AGE_BY_SIZE = {
    "small": 10,
    "medium": 8,
    "large": 6,
}


def dog_size(weight_kg: Optional[float]) -> Optional[str]:
    if weight_kg is None:
        return None
    if weight_kg < SMALL_DOG_MAX_KG:
        return "small"
    if weight_kg < MEDIUM_DOG_MAX_KG:
        return "medium"
    return "large"


def age_in_years(birthdate: date, today: date) -> float:
    return (today - birthdate).days / DAYS_PER_YEAR


def senior_age(species: Optional[Species], weight_kg: Optional[float]) -> int:
    """Age (years) from which a pet counts as senior."""
    if species == Species.CAT:
        return CAT_SENIOR_AGE
    if species == Species.DOG:
        size = dog_size(weight_kg)
        if size is not None:
            return DOG_SENIOR_AGE_BY_SIZE[size]
    return DEFAULT_SENIOR_AGE


def lifecycle_stage(profile: PetProfile, today: date) -> Optional[LifecycleStage]:
    if profile.birthdate is None or profile.birthdate > today:
        return None

    age = age_in_years(profile.birthdate, today)
    if age < 1:
        return LifecycleStage.PUPPY
    if age >= senior_age(normalize_species(profile.species), profile.weight_kg):
        return LifecycleStage.SENIOR
    return LifecycleStage.ADULT


def match_clinical_tags(rules: Iterable[ClinicalTagRule], clinical_text: str) -> List[str]:
    """Tags of rules with at least one keyword in the text (case-insensitive)."""
    text_lower = clinical_text.lower()
    matched = []
    for rule in rules:
        if any(kw.lower() in text_lower for kw in rule.keywords):
            if rule.tag not in matched:
                matched.append(rule.tag)
    return matched


def compute_pet_tags(
    profile: PetProfile,
    clinical_rules: Iterable[ClinicalTagRule],
    clinical_texts: Iterable[str],
    today: date
) -> List[str]:
    """
    Compute the pet's tag set.

    Args:
        profile: Pet attributes
        clinical_rules: Keyword rules from the tag dictionary
        clinical_texts: Recent clinical records / document text for the pet
        today: Reference date for age

    Returns:
        Tag strings, in species, size, lifecycle, clinical order
    """
    tags = []
    species = normalize_species(profile.species)

    if species is not None:
        tags.append(f"species:{species.value}")

    if species == Species.DOG:
        size = dog_size(profile.weight_kg)
        if size is not None:
            tags.append(f"size:{size}")

    stage = lifecycle_stage(profile, today)
    if stage is not None:
        tags.append(f"lifecycle:{stage.value}")

    texts = list(clinical_texts)
    if profile.extra_data:
        texts.append(json.dumps(profile.extra_data, default=str))
    tags.extend(match_clinical_tags(clinical_rules, " ".join(texts)))

    logger.debug(f"Computed {len(tags)} tags for pet {profile.pet_id}: {tags}")
    return tags

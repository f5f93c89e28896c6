from datetime import date

import pytest

from vetpromo.recommender.tag_computation_service import (
    compute_pet_tags,
    dog_size,
    lifecycle_stage,
    match_clinical_tags,
)
from vetpromo.schemas.pet import ClinicalTagRule, LifecycleStage, PetProfile

TODAY = date(2024, 1, 15)


def _profile(**kwargs) -> PetProfile:
    return PetProfile(pet_id="pet-1", **kwargs)


@pytest.mark.parametrize("weight, expected", [
    (None, None),
    (4.5, "small"),
    (10, "medium"),
    (24.9, "medium"),
    (25, "large"),
])
def test_dog_size(weight, expected):
    assert dog_size(weight) == expected


@pytest.mark.parametrize("species, weight, birthdate, expected", [
    ("dog", 5, date(2023, 6, 1), LifecycleStage.PUPPY),
    ("dog", 30, date(2017, 1, 1), LifecycleStage.SENIOR),   # large dog, 7 y
    ("dog", 5, date(2017, 1, 1), LifecycleStage.ADULT),     # small dog, 7 y
    ("cat", None, date(2015, 1, 1), LifecycleStage.ADULT),  # 9 y
    ("gatto", None, date(2013, 1, 1), LifecycleStage.SENIOR),
    ("rabbit", None, date(2016, 1, 1), LifecycleStage.SENIOR),  # default 7 y
    ("dog", 5, None, None),
])
def test_lifecycle_stage(species, weight, birthdate, expected):
    profile = _profile(species=species, weight_kg=weight, birthdate=birthdate)

    assert lifecycle_stage(profile, TODAY) == expected


def test_clinical_keywords_match_case_insensitively():
    rules = [
        ClinicalTagRule(tag="clinical:renal", keywords=["Insufficienza renale", "CKD"]),
        ClinicalTagRule(tag="clinical:cardiac", keywords=["soffio"]),
    ]

    assert match_clinical_tags(rules, "Diagnosi: ckd stadio 2") == ["clinical:renal"]


def test_compute_pet_tags_orders_and_uses_extra_data():
    profile = _profile(
        species="cane",
        weight_kg=12,
        birthdate=date(2019, 3, 1),
        extra_data={"notes": "allergia alimentare al pollo"},
    )
    rules = [ClinicalTagRule(tag="clinical:food_allergy", keywords=["allergia alimentare"])]

    tags = compute_pet_tags(profile, rules, [], TODAY)

    assert tags == ["species:dog", "size:medium", "lifecycle:adult", "clinical:food_allergy"]


def test_unknown_species_gets_no_species_tag():
    tags = compute_pet_tags(_profile(species="drago"), [], [], TODAY)

    assert tags == []

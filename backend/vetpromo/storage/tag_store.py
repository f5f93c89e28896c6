"""
Tag Store
=========

SQL access to `pet_tags`, `pets` and the inputs of tag computation.
"""

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.tag_computation_service import compute_pet_tags
from vetpromo.schemas._coercion import as_mapping
from vetpromo.schemas.pet import ClinicalTagRule, PetProfile, PetTag
from vetpromo.storage.database import DATABASE_ERRORS, fetch_all, fetch_scalar, get_session_factory

logger = logging.getLogger(__name__)

DEPENDENCY = "tag_store"
CLINICAL_TEXT_LIMIT = 10


class SqlTagStore:
    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    async def get_tags(self, pet_id: str) -> List[PetTag]:
        rows = await fetch_all(
            self.session_factory,
            """
                SELECT tag, value, computed_at
                FROM pet_tags
                WHERE pet_id = :pet_id
            """,
            {"pet_id": pet_id},
            DEPENDENCY
        )
        tags = []
        for row in rows:
            try:
                tags.append(PetTag(**row))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable tag row for pet {pet_id}: {e}")
        return tags

    async def get_species(self, pet_id: str) -> Optional[str]:
        return await fetch_scalar(
            self.session_factory,
            "SELECT species FROM pets WHERE pet_id = :pet_id LIMIT 1",
            {"pet_id": pet_id},
            DEPENDENCY
        )

    async def _get_profile(self, pet_id: str) -> Optional[PetProfile]:
        rows = await fetch_all(
            self.session_factory,
            """
                SELECT pet_id, species, breed, birthdate, weight_kg, extra_data
                FROM pets
                WHERE pet_id = :pet_id
                LIMIT 1
            """,
            {"pet_id": pet_id},
            DEPENDENCY
        )
        if not rows:
            return None
        try:
            return PetProfile(**rows[0])
        except ValidationError as e:
            raise DependencyUnavailable(DEPENDENCY, f"unreadable pets row for {pet_id}: {e}") from e

    async def _get_clinical_rules(self) -> List[ClinicalTagRule]:
        rows = await fetch_all(
            self.session_factory,
            """
                SELECT tag, derivation_rule
                FROM tag_dictionary
                WHERE category = 'clinical' AND sensitivity = 'high'
            """,
            {},
            DEPENDENCY
        )
        rules = []
        for row in rows:
            try:
                derivation = as_mapping(row["derivation_rule"]) or {}
            except ValueError as e:
                logger.warning(f"Skipping tag rule {row['tag']!r} with undecodable derivation_rule: {e}")
                continue
            if not isinstance(derivation, dict):
                logger.warning(f"Skipping tag rule {row['tag']!r}: derivation_rule is not an object")
                continue
            if derivation.get("type") != "keyword":
                continue
            try:
                rules.append(ClinicalTagRule(tag=row["tag"], keywords=derivation.get("keywords")))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable tag rule {row['tag']!r}: {e}")
        return rules

    async def _get_clinical_texts(self, pet_id: str) -> List[str]:
        texts = []

        records = await fetch_all(
            self.session_factory,
            """
                SELECT record FROM pet_changes
                WHERE pet_id = :pet_id
                ORDER BY created_at DESC
                LIMIT :limit
            """,
            {"pet_id": pet_id, "limit": CLINICAL_TEXT_LIMIT},
            DEPENDENCY
        )
        for row in records:
            if row["record"]:
                record = row["record"]
                texts.append(record if isinstance(record, str) else json.dumps(record, default=str))

        documents = await fetch_all(
            self.session_factory,
            """
                SELECT read_text, owner_explanation FROM documents
                WHERE pet_id = :pet_id
                  AND (read_text IS NOT NULL OR owner_explanation IS NOT NULL)
                ORDER BY created_at DESC
                LIMIT :limit
            """,
            {"pet_id": pet_id, "limit": CLINICAL_TEXT_LIMIT},
            DEPENDENCY
        )
        for row in documents:
            texts.extend(t for t in (row["read_text"], row["owner_explanation"]) if t)

        return texts

    async def compute_tags(self, pet_id: str, owner_id: str) -> List[str]:
        """
        Compute and upsert the pet's tags.

        Returns:
            The computed tags (empty if the pet does not exist)
        """
        profile = await self._get_profile(pet_id)
        if profile is None:
            logger.warning(f"Cannot compute tags: pet {pet_id} not found")
            return []

        rules = await self._get_clinical_rules()
        texts = await self._get_clinical_texts(pet_id) if rules else []
        tags = compute_pet_tags(profile, rules, texts, datetime.now(timezone.utc).date())

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    for tag in tags:
                        await session.execute(
                            text("""
                                INSERT INTO pet_tags (pet_id, tag, source, computed_at)
                                VALUES (:pet_id, :tag, 'computed', NOW())
                                ON CONFLICT (pet_id, tag) DO UPDATE SET
                                    source = 'computed',
                                    computed_at = NOW()
                            """),
                            {"pet_id": pet_id, "tag": tag}
                        )
        except DATABASE_ERRORS as e:
            raise DependencyUnavailable(DEPENDENCY, str(e)) from e

        logger.info(f"Computed {len(tags)} tags for pet {pet_id} (owner {owner_id})")
        return tags

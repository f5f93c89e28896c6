"""
Tag Snapshot Reader
===================

Read a pet's tag set, normalized species and lifecycle stage.

If the pet has no persisted tags, the tag computation collaborator is
triggered once (bounded by a timeout) and the tags are re-read. Any failure
degrades to an empty snapshot: the pet is scored with zero tag affinity,
never excluded.
"""

import logging
from typing import List, Optional

from vetpromo.config import settings
from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.async_utils import bounded
from vetpromo.recommender.interfaces import TagStore
from vetpromo.recommender.models import PetTagSnapshot
from vetpromo.schemas.pet import LifecycleStage, PetTag, Species

logger = logging.getLogger(__name__)

LIFECYCLE_PREFIX = "lifecycle:"

# Raw species spellings (Italian UI + English) -> closed enum
SPECIES_SYNONYMS = {
    "dog": Species.DOG,
    "cane": Species.DOG,
    "canine": Species.DOG,
    "cat": Species.CAT,
    "gatto": Species.CAT,
    "feline": Species.CAT,
    "rabbit": Species.RABBIT,
    "coniglio": Species.RABBIT,
    "ferret": Species.FERRET,
    "furetto": Species.FERRET,
    "bird": Species.BIRD,
    "uccello": Species.BIRD,
    "reptile": Species.REPTILE,
    "rettile": Species.REPTILE,
}


def normalize_species(raw: Optional[str]) -> Optional[Species]:
    """Map a free-text species through the synonym table; unknown -> None."""
    if not raw:
        return None
    return SPECIES_SYNONYMS.get(raw.strip().lower())


def derive_lifecycle_stage(tags: List[PetTag]) -> Optional[LifecycleStage]:
    """
    Lifecycle from the most recently computed `lifecycle:*` tag.

    Tags without computed_at rank below any dated tag.
    """
    lifecycle_tags = [t for t in tags if t.tag.startswith(LIFECYCLE_PREFIX)]
    if not lifecycle_tags:
        return None

    latest = max(
        lifecycle_tags,
        key=lambda t: (t.computed_at is not None, t.computed_at.timestamp() if t.computed_at else 0.0)
    )
    stage = latest.tag[len(LIFECYCLE_PREFIX):].strip().lower()
    try:
        return LifecycleStage(stage)
    except ValueError:
        logger.debug(f"Unknown lifecycle tag {latest.tag!r}, ignoring")
        return None


class TagSnapshotReader:
    def __init__(
        self,
        tag_store: TagStore,
        compute_timeout_seconds: Optional[float] = None
    ):
        self.tag_store = tag_store
        self.compute_timeout_seconds = (
            compute_timeout_seconds
            if compute_timeout_seconds is not None
            else settings.tag_compute_timeout_seconds
        )

    async def _read_tags(self, pet_id: str, owner_id: str) -> List[PetTag]:
        tags = await self.tag_store.get_tags(pet_id)
        if tags:
            return tags

        logger.info(f"No tags for pet {pet_id}, triggering tag computation")
        computed = await bounded(
            self.tag_store.compute_tags(pet_id, owner_id),
            self.compute_timeout_seconds,
            "tag_computation"
        )
        if not computed:
            return []
        return await self.tag_store.get_tags(pet_id)

    async def read(self, pet_id: str, owner_id: str) -> PetTagSnapshot:
        """
        Build the pet's tag snapshot.

        Args:
            pet_id: Pet ID
            owner_id: Owner user ID (passed to tag computation)

        Returns:
            PetTagSnapshot (empty parts where a lookup failed)
        """
        tags: List[PetTag] = []
        try:
            tags = await self._read_tags(pet_id, owner_id)
        except DependencyUnavailable as e:
            logger.warning(f"Tag lookup failed for pet {pet_id}, using empty tag set: {e}")

        species = None
        try:
            species = normalize_species(await self.tag_store.get_species(pet_id))
        except DependencyUnavailable as e:
            logger.warning(f"Species lookup failed for pet {pet_id}: {e}")

        snapshot = PetTagSnapshot(
            species=species,
            lifecycle_stage=derive_lifecycle_stage(tags),
            tags=frozenset(t.tag for t in tags),
        )
        logger.debug(
            f"Tag snapshot for pet {pet_id}: species={species}, "
            f"lifecycle={snapshot.lifecycle_stage}, tags={len(snapshot.tags)}"
        )
        return snapshot

"""
In-memory stores.

Same contracts as the SQL / Redis adapters. Used by the test-suite and the
preview script; setting `unavailable = True` makes every call raise
DependencyUnavailable, like a store that is down.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from vetpromo.errors import DependencyUnavailable
from vetpromo.recommender.tag_computation_service import compute_pet_tags
from vetpromo.schemas.candidate import Candidate, CandidateStatus, ServiceType
from vetpromo.schemas.consent import ConsentChange, ConsentRecord, ConsentStatus
from vetpromo.schemas.event import EventType, ImpressionEvent
from vetpromo.schemas.pet import ClinicalTagRule, PetProfile, PetTag, ShortlistEntry

logger = logging.getLogger(__name__)


class _InMemoryStore:
    dependency = "store"

    def __init__(self):
        self.unavailable = False

    def _ensure_available(self) -> None:
        if self.unavailable:
            raise DependencyUnavailable(self.dependency, "store marked unavailable")


class InMemoryConsentStore(_InMemoryStore):
    dependency = "consent_store"

    def __init__(self, records: Iterable[ConsentRecord] = ()):
        super().__init__()
        self._records: Dict[Tuple[str, str, str], ConsentRecord] = {}
        self.versions: List[Dict[str, Optional[str]]] = []
        for record in records:
            self._records[(record.owner_id, record.consent_type.value, record.scope)] = record

    async def get_consent_rows(self, owner_id: str) -> List[ConsentRecord]:
        self._ensure_available()
        return [r for r in self._records.values() if r.owner_id == owner_id]

    async def get_pending_consents(self, owner_id: str) -> List[ConsentRecord]:
        self._ensure_available()
        return [
            r for r in self._records.values()
            if r.owner_id == owner_id and r.status == ConsentStatus.PENDING
        ]

    async def upsert_consent(self, change: ConsentChange) -> ConsentRecord:
        self._ensure_available()
        key = (change.owner_id, change.consent_type.value, change.scope)
        old = self._records.get(key)
        record = ConsentRecord(
            owner_id=change.owner_id,
            consent_type=change.consent_type,
            scope=change.scope,
            status=change.status,
            updated_at=datetime.now(timezone.utc),
        )
        self._records[key] = record
        self.versions.append({
            "owner_id": change.owner_id,
            "consent_type": change.consent_type.value,
            "scope": change.scope,
            "old_status": old.status.value if old else None,
            "new_status": change.status.value,
            "changed_by": change.changed_by,
        })
        return record


class InMemoryTagStore(_InMemoryStore):
    dependency = "tag_store"

    def __init__(
        self,
        tags: Optional[Dict[str, List[PetTag]]] = None,
        species: Optional[Dict[str, str]] = None,
        profiles: Optional[Dict[str, PetProfile]] = None,
        clinical_rules: Sequence[ClinicalTagRule] = (),
        clinical_texts: Optional[Dict[str, List[str]]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        super().__init__()
        self.tags = tags if tags is not None else {}
        self.species = species if species is not None else {}
        self.profiles = profiles if profiles is not None else {}
        self.clinical_rules = list(clinical_rules)
        self.clinical_texts = clinical_texts if clinical_texts is not None else {}
        self.clock = clock
        self.compute_calls: List[str] = []

    async def get_tags(self, pet_id: str) -> List[PetTag]:
        self._ensure_available()
        return list(self.tags.get(pet_id, []))

    async def get_species(self, pet_id: str) -> Optional[str]:
        self._ensure_available()
        if pet_id in self.species:
            return self.species[pet_id]
        profile = self.profiles.get(pet_id)
        return profile.species if profile else None

    async def compute_tags(self, pet_id: str, owner_id: str) -> List[str]:
        self._ensure_available()
        self.compute_calls.append(pet_id)
        profile = self.profiles.get(pet_id)
        if profile is None:
            return []

        now = self.clock()
        computed = compute_pet_tags(
            profile, self.clinical_rules, self.clinical_texts.get(pet_id, []), now.date()
        )
        existing = {t.tag: t for t in self.tags.get(pet_id, [])}
        for tag in computed:
            existing[tag] = PetTag(tag=tag, computed_at=now)
        self.tags[pet_id] = list(existing.values())
        return computed


class InMemoryCandidateStore(_InMemoryStore):
    """
    Candidates are held one row per (item, campaign); campaign dates are
    assumed already applied.
    """
    dependency = "candidate_store"

    def __init__(self, candidates: Iterable[Candidate] = ()):
        super().__init__()
        self.candidates = list(candidates)

    async def get_published_candidates(
        self,
        context: str,
        service_type: Optional[ServiceType],
        today: datetime,
    ) -> List[Candidate]:
        self._ensure_available()
        return [
            c for c in self.candidates
            if c.status == CandidateStatus.PUBLISHED
            and (service_type is None or c.serves(service_type))
        ]

    async def get_published_candidate(self, candidate_id: str) -> Optional[Candidate]:
        self._ensure_available()
        for c in self.candidates:
            if c.id == candidate_id and c.status == CandidateStatus.PUBLISHED:
                return c
        return None


class InMemoryEventStore(_InMemoryStore):
    dependency = "event_store"

    def __init__(self, events: Iterable[ImpressionEvent] = ()):
        super().__init__()
        self.events = list(events)

    async def count_impressions(
        self,
        owner_id: str,
        pet_id: str,
        since: datetime,
        context: Optional[str] = None,
        candidate_id: Optional[str] = None,
    ) -> int:
        self._ensure_available()
        return sum(
            1 for e in self.events
            if e.event_type == EventType.IMPRESSION
            and e.owner_id == owner_id
            and e.pet_id == pet_id
            and e.occurred_at >= since
            and (context is None or e.context == context)
            and (candidate_id is None or e.promo_item_id == candidate_id)
        )

    async def record_event(self, event: ImpressionEvent) -> None:
        self._ensure_available()
        self.events.append(event)


class InMemoryVetFlagStore(_InMemoryStore):
    dependency = "vet_flag_store"

    def __init__(self, flags: Iterable[Tuple[str, str]] = ()):
        super().__init__()
        self.flags: Set[Tuple[str, str]] = set(flags)

    async def has_active_flag(self, pet_id: str, candidate_id: str) -> bool:
        self._ensure_available()
        return (pet_id, candidate_id) in self.flags


class InMemoryShortlistCache(_InMemoryStore):
    dependency = "shortlist_cache"

    def __init__(self, shortlists: Optional[Dict[str, List[ShortlistEntry]]] = None):
        super().__init__()
        self.shortlists = shortlists if shortlists is not None else {}

    async def get_shortlist(self, pet_id: str) -> Optional[List[ShortlistEntry]]:
        self._ensure_available()
        entries = self.shortlists.get(pet_id)
        return list(entries) if entries is not None else None

    async def store_shortlist(self, pet_id: str, entries: Sequence[ShortlistEntry]) -> None:
        self._ensure_available()
        self.shortlists[pet_id] = list(entries)

    async def invalidate_shortlist(self, pet_id: str) -> None:
        self._ensure_available()
        self.shortlists.pop(pet_id, None)
        logger.info(f"Cleared AI shortlist for pet {pet_id}")

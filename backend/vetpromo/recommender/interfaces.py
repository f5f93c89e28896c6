"""
Collaborator protocols consumed by the selection pipeline.

Every implementation raises `DependencyUnavailable` when it cannot answer;
the pipeline stages decide whether that fails open or closed.
"""
from datetime import datetime
from typing import List, Optional, Protocol

from vetpromo.schemas.candidate import Candidate, ServiceType
from vetpromo.schemas.consent import ConsentChange, ConsentRecord
from vetpromo.schemas.event import ImpressionEvent
from vetpromo.schemas.pet import PetTag, ShortlistEntry


class ConsentStore(Protocol):
    async def get_consent_rows(self, owner_id: str) -> List[ConsentRecord]: ...

    async def upsert_consent(self, change: ConsentChange) -> ConsentRecord: ...


class TagStore(Protocol):
    async def get_tags(self, pet_id: str) -> List[PetTag]: ...

    async def compute_tags(self, pet_id: str, owner_id: str) -> List[str]: ...

    async def get_species(self, pet_id: str) -> Optional[str]: ...


class CandidateStore(Protocol):
    async def get_published_candidates(
        self,
        context: str,
        service_type: Optional[ServiceType],
        today: datetime,
    ) -> List[Candidate]: ...

    async def get_published_candidate(self, candidate_id: str) -> Optional[Candidate]: ...


class EventStore(Protocol):
    async def count_impressions(
        self,
        owner_id: str,
        pet_id: str,
        since: datetime,
        context: Optional[str] = None,
        candidate_id: Optional[str] = None,
    ) -> int: ...

    async def record_event(self, event: ImpressionEvent) -> None: ...


class VetFlagStore(Protocol):
    async def has_active_flag(self, pet_id: str, candidate_id: str) -> bool: ...


class ShortlistCache(Protocol):
    async def get_shortlist(self, pet_id: str) -> Optional[List[ShortlistEntry]]: ...

    async def invalidate_shortlist(self, pet_id: str) -> None: ...

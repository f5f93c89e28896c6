from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from vetpromo.schemas.pet import VetFlagStatus
from vetpromo.storage.database import fetch_scalar, get_session_factory

DEPENDENCY = "vet_flag_store"


class SqlVetFlagStore:
    """Active vet flags veto a promo item for one pet."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    async def has_active_flag(self, pet_id: str, candidate_id: str) -> bool:
        found = await fetch_scalar(
            self.session_factory,
            """
                SELECT 1 FROM vet_flags
                WHERE pet_id = :pet_id
                  AND promo_item_id = :candidate_id
                  AND status = :status
                LIMIT 1
            """,
            {"pet_id": pet_id, "candidate_id": candidate_id, "status": VetFlagStatus.ACTIVE.value},
            DEPENDENCY
        )
        return found is not None

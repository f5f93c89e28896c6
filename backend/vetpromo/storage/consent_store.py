"""
Consent Store
=============

SQL access to `consents` and the append-only `consent_versions` audit trail.
Records are never deleted; every change writes a version row in the same
transaction as the upsert.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from vetpromo.errors import DependencyUnavailable
from vetpromo.schemas.consent import ConsentChange, ConsentRecord, ConsentStatus
from vetpromo.storage.database import DATABASE_ERRORS, fetch_all, get_session_factory

logger = logging.getLogger(__name__)

DEPENDENCY = "consent_store"


def _parse_rows(rows, owner_id: str) -> List[ConsentRecord]:
    records = []
    for row in rows:
        try:
            records.append(ConsentRecord(owner_id=owner_id, **row))
        except ValidationError as e:
            logger.warning(f"Skipping unreadable consent row for owner {owner_id}: {e}")
    return records


class SqlConsentStore:
    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    async def get_consent_rows(self, owner_id: str) -> List[ConsentRecord]:
        rows = await fetch_all(
            self.session_factory,
            """
                SELECT consent_type, scope, status, updated_at
                FROM consents
                WHERE owner_user_id = :owner_id
            """,
            {"owner_id": owner_id},
            DEPENDENCY
        )
        return _parse_rows(rows, owner_id)

    async def get_pending_consents(self, owner_id: str) -> List[ConsentRecord]:
        """Pending records (e.g. a new tenant awaiting acknowledgement)."""
        rows = await fetch_all(
            self.session_factory,
            """
                SELECT consent_type, scope, status, updated_at
                FROM consents
                WHERE owner_user_id = :owner_id AND status = :status
            """,
            {"owner_id": owner_id, "status": ConsentStatus.PENDING.value},
            DEPENDENCY
        )
        return _parse_rows(rows, owner_id)

    async def upsert_consent(self, change: ConsentChange) -> ConsentRecord:
        """
        Upsert one consent and append its version row.

        Args:
            change: The requested change (with audit fields)

        Returns:
            The resulting ConsentRecord
        """
        params = {
            "owner_id": change.owner_id,
            "consent_type": change.consent_type.value,
            "scope": change.scope,
        }
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        text("""
                            SELECT status FROM consents
                            WHERE owner_user_id = :owner_id
                              AND consent_type = :consent_type
                              AND scope = :scope
                            FOR UPDATE
                        """),
                        params
                    )
                    old_status = result.scalar()

                    await session.execute(
                        text("""
                            INSERT INTO consents (owner_user_id, consent_type, scope, status, updated_at)
                            VALUES (:owner_id, :consent_type, :scope, :status, NOW())
                            ON CONFLICT (owner_user_id, consent_type, scope) DO UPDATE SET
                                status = EXCLUDED.status,
                                updated_at = NOW()
                        """),
                        {**params, "status": change.status.value}
                    )

                    await session.execute(
                        text("""
                            INSERT INTO consent_versions (
                                owner_user_id, consent_type, scope,
                                old_status, new_status, changed_by, ip_address
                            ) VALUES (
                                :owner_id, :consent_type, :scope,
                                :old_status, :new_status, :changed_by, :ip_address
                            )
                        """),
                        {
                            **params,
                            "old_status": old_status,
                            "new_status": change.status.value,
                            "changed_by": change.changed_by,
                            "ip_address": change.ip_address,
                        }
                    )
        except DATABASE_ERRORS as e:
            raise DependencyUnavailable(DEPENDENCY, str(e)) from e

        logger.info(
            f"Consent {change.consent_type.value}/{change.scope} for owner {change.owner_id}: "
            f"{old_status} -> {change.status.value}"
        )
        return ConsentRecord(
            owner_id=change.owner_id,
            consent_type=change.consent_type,
            scope=change.scope,
            status=change.status,
        )

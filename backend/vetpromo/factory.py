"""
Wire the selection service to the configured stores.
"""
import logging
from typing import Optional

from vetpromo.config import settings
from vetpromo.recommender.impression_recorder import ImpressionRecorder
from vetpromo.recommender.selection_service import PromoSelectionService
from vetpromo.storage.candidate_store import SqlCandidateStore
from vetpromo.storage.consent_store import SqlConsentStore
from vetpromo.storage.database import get_session_factory
from vetpromo.storage.event_store import SqlEventStore
from vetpromo.storage.memory import InMemoryShortlistCache
from vetpromo.storage.redis_shortlist_cache import RedisShortlistCache
from vetpromo.storage.tag_store import SqlTagStore
from vetpromo.storage.vet_flag_store import SqlVetFlagStore

logger = logging.getLogger(__name__)

_selection_service_instance: Optional[PromoSelectionService] = None
_impression_recorder_instance: Optional[ImpressionRecorder] = None


def build_shortlist_cache():
    if settings.redis_url:
        return RedisShortlistCache.from_url(settings.redis_url)
    logger.warning("REDIS_URL not set, AI shortlist cache is process-local")
    return InMemoryShortlistCache()


def get_selection_service() -> PromoSelectionService:
    """
    Get singleton instance of PromoSelectionService.
    """
    global _selection_service_instance

    if _selection_service_instance is None:
        session_factory = get_session_factory()
        _selection_service_instance = PromoSelectionService(
            consent_store=SqlConsentStore(session_factory),
            tag_store=SqlTagStore(session_factory),
            candidate_store=SqlCandidateStore(session_factory),
            event_store=SqlEventStore(session_factory),
            vet_flag_store=SqlVetFlagStore(session_factory),
            shortlist_cache=build_shortlist_cache(),
        )

    return _selection_service_instance


def get_impression_recorder() -> ImpressionRecorder:
    global _impression_recorder_instance

    if _impression_recorder_instance is None:
        _impression_recorder_instance = ImpressionRecorder(SqlEventStore(get_session_factory()))

    return _impression_recorder_instance

"""
Redis Shortlist Cache
=====================

Holds the out-of-band AI-ranked shortlist per pet.

Redis keys:
- pet:{pet_id}:ai_shortlist (String, JSON list of {promo_item_id, key_matches})

The producer writes the key with a TTL; the engine only reads and clears it.
"""

import json
import logging
from typing import List, Optional, Sequence

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from vetpromo.config import settings
from vetpromo.errors import DependencyUnavailable
from vetpromo.schemas.pet import ShortlistEntry

logger = logging.getLogger(__name__)

DEPENDENCY = "shortlist_cache"
DEFAULT_TTL_SECONDS = 86400


class RedisShortlistCache:
    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS
    ):
        """
        Args:
            redis_client: redis.asyncio client (decode_responses=True)
            key_prefix: Key namespace (default from settings)
            ttl_seconds: TTL used by store_shortlist
        """
        self.redis_client = redis_client
        self.key_prefix = key_prefix or settings.shortlist_key_prefix
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisShortlistCache":
        client = redis.from_url(url, decode_responses=True)
        logger.info(f"RedisShortlistCache initialized: prefix={kwargs.get('key_prefix') or settings.shortlist_key_prefix}")
        return cls(client, **kwargs)

    def _key(self, pet_id: str) -> str:
        return f"{self.key_prefix}:{pet_id}:ai_shortlist"

    async def get_shortlist(self, pet_id: str) -> Optional[List[ShortlistEntry]]:
        """
        Read the pet's shortlist.

        Returns:
            Entries in stored order, or None if there is no shortlist.
            Malformed entries are dropped; an undecodable value reads as None.
        """
        try:
            raw = await self.redis_client.get(self._key(pet_id))
        except RedisError as e:
            raise DependencyUnavailable(DEPENDENCY, str(e)) from e

        if raw is None:
            return None

        try:
            items = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Undecodable shortlist for pet {pet_id}: {e}")
            return None
        if not isinstance(items, list):
            logger.warning(f"Shortlist for pet {pet_id} is not a list, ignoring")
            return None

        entries = []
        for item in items:
            try:
                entries.append(ShortlistEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Dropping malformed shortlist entry for pet {pet_id}: {e}")
        return entries

    async def store_shortlist(self, pet_id: str, entries: Sequence[ShortlistEntry]) -> None:
        payload = json.dumps([e.model_dump(by_alias=True) for e in entries])
        try:
            await self.redis_client.set(self._key(pet_id), payload, ex=self.ttl_seconds)
        except RedisError as e:
            raise DependencyUnavailable(DEPENDENCY, str(e)) from e

    async def invalidate_shortlist(self, pet_id: str) -> None:
        try:
            await self.redis_client.delete(self._key(pet_id))
        except RedisError as e:
            raise DependencyUnavailable(DEPENDENCY, str(e)) from e
        logger.info(f"Cleared AI shortlist for pet {pet_id}")

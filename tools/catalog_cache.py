import json
import os
import time
from typing import Dict, List, Optional, Tuple

import redis
from loguru import logger

from mapping.models import ExternalFieldDefinition
from tools import ghl

DEFAULT_TTL = 300


class CatalogCache:
    """Short-lived per-location cache of the CRM custom field catalog.

    Redis when reachable, process memory otherwise. A TTL of 0 disables caching.
    """

    def __init__(self, ttl: Optional[int] = None, redis_url: Optional[str] = None):
        self.ttl = ttl if ttl is not None else int(os.getenv("CATALOG_CACHE_TTL", DEFAULT_TTL))
        self._memory: Dict[str, Tuple[float, List[ExternalFieldDefinition]]] = {}
        try:
            self.r = redis.from_url(redis_url or os.getenv("REDIS_URL", "redis://localhost:6379"))
            self.r.ping()
            logger.info("Catalog cache using Redis")
        except Exception as e:
            logger.warning(f"Catalog cache falling back to memory: {e}")
            self.r = None

    def _key(self, location_id: str) -> str:
        return f"catalog:{location_id}"

    def get(self, location_id: str) -> Optional[List[ExternalFieldDefinition]]:
        if self.ttl <= 0 or not location_id:
            return None
        try:
            if self.r:
                cached = self.r.get(self._key(location_id))
                if not cached:
                    return None
                return [ExternalFieldDefinition.model_validate(item) for item in json.loads(cached)]

            entry = self._memory.get(location_id)
            if entry is None:
                return None
            expires_at, fields = entry
            if time.time() >= expires_at:
                del self._memory[location_id]
                return None
            return list(fields)
        except Exception as e:
            logger.error(f"Catalog cache read failed: {e}")
            return None

    def set(self, location_id: str, fields: List[ExternalFieldDefinition]) -> None:
        if self.ttl <= 0 or not location_id:
            return
        try:
            if self.r:
                body = json.dumps([field.model_dump(mode="json", by_alias=True) for field in fields])
                self.r.set(self._key(location_id), body, ex=self.ttl)
            else:
                self._memory[location_id] = (time.time() + self.ttl, list(fields))
        except Exception as e:
            logger.error(f"Catalog cache write failed: {e}")

    def clear(self, location_id: str) -> None:
        try:
            if self.r:
                self.r.delete(self._key(location_id))
            self._memory.pop(location_id, None)
        except Exception as e:
            logger.error(f"Failed to clear catalog cache: {e}")


def fetch_catalog(cache: Optional[CatalogCache] = None) -> List[ExternalFieldDefinition]:
    """
    Catalog for the configured location, from cache when fresh.

    Raises CatalogUnavailable when the CRM cannot be read. Failures are never cached.
    """
    location_id = ghl.ghl_client.location_id or ""
    if cache is not None:
        cached = cache.get(location_id)
        if cached is not None:
            logger.debug(f"Catalog cache hit for location {location_id} ({len(cached)} fields)")
            return cached

    fields = ghl.fetch_custom_fields()
    if cache is not None:
        cache.set(location_id, fields)
    return fields

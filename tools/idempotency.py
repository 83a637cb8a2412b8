import os
import time
from typing import Any, Dict, Optional

import redis
from loguru import logger

KEY_PREFIX = "lead-submission"
DEFAULT_TTL = 3600


def submission_key(payload: Dict[str, Any], form_type: str) -> Optional[str]:
    """
    Dedup key for an inbound submission.

    An explicit submissionId/event_id wins; otherwise form + email + submit
    timestamp. Returns None when the submission cannot be identified.
    """
    explicit = payload.get("submissionId") or payload.get("event_id")
    if explicit:
        return f"{form_type}:{explicit}"
    email = str(payload.get("email") or "").strip().lower()
    submitted = payload.get("submissionDate") or payload.get("timestamp")
    if not email or not submitted:
        return None
    return f"{form_type}:{email}:{submitted}"


class Idem:
    """Redis-based guard against writing the same form submission twice."""

    def __init__(self, redis_url: Optional[str] = None):
        self._memory_keys: Dict[str, float] = {}
        try:
            self.r = redis.from_url(redis_url or os.getenv("REDIS_URL", "redis://localhost:6379"))
            self.r.ping()
            logger.info("Redis connection established successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            # In-memory fallback, per process only
            self.r = None

    def check_and_set(self, key: str, ttl: int = DEFAULT_TTL) -> bool:
        """
        Record a submission key unless it was seen within `ttl` seconds.

        Returns:
            True if the submission is new, False if it is a duplicate
        """
        if not key:
            logger.warning("Empty key provided to idempotency check")
            return False

        try:
            if self.r:
                result = self.r.set(
                    name=f"{KEY_PREFIX}:{key}",
                    value=int(time.time()),
                    ex=ttl,
                    nx=True
                )
                return result is True

            now = time.time()
            expires_at = self._memory_keys.get(key)
            if expires_at is not None and expires_at > now:
                return False
            self._memory_keys[key] = now + ttl
            return True

        except Exception as e:
            logger.error(f"Idempotency check failed: {e}")
            # Fail open
            return True

    def clear_key(self, key: str) -> bool:
        """Forget a key so the submission can be replayed."""
        try:
            if self.r:
                return bool(self.r.delete(f"{KEY_PREFIX}:{key}"))
            return self._memory_keys.pop(key, None) is not None
        except Exception as e:
            logger.error(f"Failed to clear key: {e}")
            return False

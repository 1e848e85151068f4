import time
import redis
import os
from typing import Dict, Optional
from loguru import logger

class Idem:
    """Redis-based duplicate suppression for notification events and inbound leads."""

    def __init__(self, redis_url: Optional[str] = None, namespace: str = "idem"):
        """Initialize Redis connection."""
        self.namespace = namespace
        self._memory_keys: Dict[str, float] = {}
        try:
            redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
            self.r = redis.from_url(redis_url, socket_connect_timeout=2)
            # Test connection
            self.r.ping()
            logger.info("Redis connection established successfully")
        except Exception as e:
            logger.warning(f"Redis unavailable, using in-memory dedupe keys: {e}")
            self.r = None

    def check_and_set(self, key: str, ttl: int = 600) -> bool:
        """
        Check if key exists and set it if it doesn't.

        Args:
            key: Dedupe key for the event
            ttl: Time to live in seconds

        Returns:
            True if key was set (first sighting), False if already seen
        """
        if not key:
            logger.warning("Empty key provided to idempotency check")
            return False

        try:
            if self.r:
                result = self.r.set(
                    name=f"{self.namespace}:{key}",
                    value=int(time.time()),
                    ex=ttl,
                    nx=True
                )
                return result is True

            now = time.time()
            expires_at = self._memory_keys.get(key)
            if expires_at and expires_at > now:
                return False
            self._memory_keys = {k: exp for k, exp in self._memory_keys.items() if exp > now}
            self._memory_keys[key] = now + ttl
            return True

        except Exception as e:
            logger.error(f"Idempotency check failed: {e}")
            # Fail open - allow dispatch to continue
            return True

    def clear_key(self, key: str) -> bool:
        """Manually clear a key (for testing/debugging)."""
        try:
            if self.r:
                return bool(self.r.delete(f"{self.namespace}:{key}"))
            self._memory_keys.pop(key, None)
            return True
        except Exception as e:
            logger.error(f"Failed to clear key: {e}")
            return False

    @property
    def backend(self) -> str:
        return "redis" if self.r else "memory"

import json
import logging
from functools import lru_cache
from typing import Dict, Optional

import redis

from slotplanner.config.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class ResultCache:
    """Current assignment result per project, stored as JSON in Redis."""

    def __init__(self, redis_url: str = settings.redis_url, ttl_seconds: int = settings.cache_ttl_seconds):
        self.redis_client = redis.from_url(redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(project_id: str) -> str:
        return f"assignment:{project_id}"

    def get(self, project_id: str) -> Optional[Dict]:
        """Retrieve the cached result; a Redis outage counts as a miss."""
        try:
            cached = self.redis_client.get(self.key(project_id))
        except redis.RedisError as exc:
            logger.warning(f"Cache read failed for project {project_id}: {exc}")
            return None
        if cached:
            return json.loads(cached)
        return None

    def set(self, project_id: str, result: Dict) -> None:
        try:
            self.redis_client.setex(self.key(project_id), self.ttl_seconds, json.dumps(result, default=str))
        except redis.RedisError as exc:
            logger.warning(f"Cache write failed for project {project_id}: {exc}")

    def delete(self, project_id: str) -> None:
        """Invalidate cache entry."""
        try:
            self.redis_client.delete(self.key(project_id))
        except redis.RedisError as exc:
            logger.warning(f"Cache invalidation failed for project {project_id}: {exc}")

    def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False


@lru_cache(maxsize=1)
def get_cache() -> ResultCache:
    return ResultCache()

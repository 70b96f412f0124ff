import time
from typing import Optional

from . import config
from .logging_config import get_logger

logger = get_logger(__name__)


class SessionStore:
    """Session expiry index kept in a Redis sorted set scored by expiry time.

    Session documents live at ``{prefix}:session:{id}``; the index lets
    expired ones be found without scanning the keyspace.
    """

    def __init__(self, redis_client, key_prefix: str = config.KV_KEY_PREFIX):
        self._redis = redis_client
        self.index_key = f"{key_prefix}:sessions:expiry"
        self.session_prefix = f"{key_prefix}:session:"

    def session_key(self, session_id: str) -> str:
        return f"{self.session_prefix}{session_id}"

    async def track(self, session_id: str, expires_at: float) -> None:
        await self._redis.zadd(self.index_key, {session_id: expires_at})

    async def cleanup_expired(self, now: Optional[float] = None) -> int:
        """Delete every session whose expiry is in the past and return how many.

        Index members are removed by score, so a session refreshed after the
        scan keeps its new entry, and its document is left alone.
        """
        if now is None:
            now = time.time()
        try:
            expired = await self._redis.zrangebyscore(self.index_key, "-inf", now)
            if not expired:
                return 0
            await self._redis.zremrangebyscore(self.index_key, "-inf", now)

            removed = []
            for session_id in expired:
                if await self._redis.zscore(self.index_key, session_id) is None:
                    removed.append(session_id)
            if removed:
                await self._redis.delete(*[self.session_key(s) for s in removed])
            logger.info("sessions_cleaned", count=len(removed))
            return len(removed)
        except Exception as exc:
            logger.error("sessions_cleanup_failed", error=str(exc))
            return 0

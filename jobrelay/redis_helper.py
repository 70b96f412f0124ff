import fnmatch
import time
from typing import Dict, List, Optional

from . import config

if not config.TESTING:
    import redis.asyncio as redis  # type: ignore
    RedisClient = redis.Redis
else:
    RedisClient = None


class AsyncInMemoryRedis:
    """Subset of the redis.asyncio API backed by dicts, used when TESTING=1."""

    def __init__(self):
        self._strings: Dict[str, str] = {}
        self._expiry: Dict[str, float] = {}
        self._zsets: Dict[str, Dict[str, float]] = {}

    def _alive(self, name: str) -> bool:
        deadline = self._expiry.get(name)
        if deadline is not None and deadline <= time.monotonic():
            self._strings.pop(name, None)
            self._zsets.pop(name, None)
            del self._expiry[name]
        return name in self._strings or name in self._zsets

    async def ping(self) -> bool:
        return True

    async def get(self, name: str) -> Optional[str]:
        if not self._alive(name):
            return None
        return self._strings.get(name)

    async def set(self, name: str, value: str):
        self._strings[name] = value
        self._expiry.pop(name, None)
        return True

    async def setex(self, name: str, time_seconds: int, value: str):
        self._strings[name] = value
        self._expiry[name] = time.monotonic() + time_seconds
        return True

    async def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            if self._alive(name):
                removed += 1
            self._strings.pop(name, None)
            self._zsets.pop(name, None)
            self._expiry.pop(name, None)
        return removed

    async def exists(self, *names: str) -> int:
        return sum(1 for name in names if self._alive(name))

    async def expire(self, name: str, time_seconds: int) -> bool:
        if not self._alive(name):
            return False
        self._expiry[name] = time.monotonic() + time_seconds
        return True

    async def keys(self, pattern: str = "*") -> List[str]:
        names = list(self._strings) + list(self._zsets)
        return [n for n in names if self._alive(n) and fnmatch.fnmatchcase(n, pattern)]

    # zset methods
    async def zadd(self, name: str, mapping: Dict[str, float]):
        z = self._zsets.setdefault(name, {})
        added = 0
        for member, score in mapping.items():
            if member not in z:
                added += 1
            z[member] = score
        return added

    async def zrangebyscore(self, name: str, min_score, max_score) -> List[str]:
        z = self._zsets.get(name, {}) if self._alive(name) else {}
        low = float(min_score)
        high = float(max_score)
        items = sorted(z.items(), key=lambda kv: kv[1])
        return [m for m, s in items if low <= s <= high]

    async def zrem(self, name: str, *members: str) -> int:
        z = self._zsets.get(name, {})
        removed = 0
        for m in members:
            if m in z:
                del z[m]
                removed += 1
        if name in self._zsets and not z:
            del self._zsets[name]
        return removed

    async def zremrangebyscore(self, name: str, min_score, max_score) -> int:
        z = self._zsets.get(name, {}) if self._alive(name) else {}
        low = float(min_score)
        high = float(max_score)
        return await self.zrem(name, *[m for m, s in z.items() if low <= s <= high])

    async def zscore(self, name: str, member: str) -> Optional[float]:
        if not self._alive(name):
            return None
        return self._zsets.get(name, {}).get(member)


# Singleton in-memory client for testing
_inmemory_client: Optional[AsyncInMemoryRedis] = None


def get_redis():
    global _inmemory_client
    if config.TESTING:
        if _inmemory_client is None:
            _inmemory_client = AsyncInMemoryRedis()
        return _inmemory_client
    return RedisClient.from_url(config.REDIS_URL, decode_responses=True)  # type: ignore

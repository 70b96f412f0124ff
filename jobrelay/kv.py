"""Compressing key-value cache over Redis.

Values are wrapped in a CacheEntry envelope before they are stored. Payloads
whose JSON encoding is larger than COMPRESSION_THRESHOLD bytes are gzipped
and base64 encoded unless the caller says otherwise.

Every KVClient method is best-effort: failures are logged and turned into a
default return value, so a cache outage never breaks the calling code path.
"""
import base64
import gzip
import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from .logging_config import get_logger
from .metrics import kv_errors_total
from .schemas import CacheEntry

logger = get_logger(__name__)

COMPRESSION_THRESHOLD = 1000
ENTRY_FIELDS = ("data", "compressed", "timestamp")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def encode_entry(value: Any, compress: Optional[bool] = None) -> CacheEntry:
    text = to_json(value)
    raw = text.encode("utf-8")
    if compress is None:
        compress = len(raw) > COMPRESSION_THRESHOLD

    if compress:
        data = base64.b64encode(gzip.compress(raw)).decode("ascii")
        return CacheEntry(data=data, compressed=True, timestamp=_now_iso())
    return CacheEntry(data=text, compressed=False, timestamp=_now_iso())


def decode_entry(entry: CacheEntry) -> Any:
    if entry.compressed:
        raw = gzip.decompress(base64.b64decode(entry.data))
        return json.loads(raw.decode("utf-8"))
    return json.loads(entry.data)


def is_entry(obj: Any) -> bool:
    return isinstance(obj, dict) and all(field in obj for field in ENTRY_FIELDS)


class KVClient:
    def __init__(self, redis_client):
        self._redis = redis_client

    def _failed(self, operation: str, exc: Exception, **context) -> None:
        kv_errors_total.labels(operation=operation).inc()
        logger.warning(f"kv_{operation}_failed", error=str(exc), **context)

    async def get(self, key: str) -> Any:
        try:
            stored = await self._redis.get(key)
            if stored is None:
                return None
            if isinstance(stored, bytes):
                stored = stored.decode("utf-8")

            try:
                parsed = json.loads(stored)
            except ValueError:
                # Legacy plain string written by something other than set()
                return stored

            if is_entry(parsed):
                return decode_entry(CacheEntry.model_validate(parsed))
            return parsed
        except Exception as exc:
            self._failed("get", exc, key=key)
            return None

    async def set(
        self,
        key: str,
        value: Any,
        expiration_ttl: Optional[int] = None,
        compress: Optional[bool] = None,
    ) -> None:
        try:
            entry = encode_entry(value, compress)
            serialized = entry.model_dump_json()
            if expiration_ttl:
                await self._redis.setex(key, expiration_ttl, serialized)
            else:
                await self._redis.set(key, serialized)
        except Exception as exc:
            self._failed("set", exc, key=key)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except Exception as exc:
            self._failed("delete", exc, key=key)

    async def keys(self, pattern: str) -> List[str]:
        try:
            found = await self._redis.keys(pattern)
            return [k.decode("utf-8") if isinstance(k, bytes) else k for k in found]
        except Exception as exc:
            self._failed("keys", exc, pattern=pattern)
            return []

    async def exists(self, key: str) -> bool:
        try:
            return await self._redis.exists(key) == 1
        except Exception as exc:
            self._failed("exists", exc, key=key)
            return False

    async def expire(self, key: str, seconds: int) -> None:
        try:
            await self._redis.expire(key, seconds)
        except Exception as exc:
            self._failed("expire", exc, key=key)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except Exception as exc:
            self._failed("ping", exc)
            return False

    async def info(self) -> Optional[str]:
        """Probe the connection with a read of a key that never exists."""
        try:
            await self._redis.get("__connection_test__")
            return "Redis connection: OK"
        except Exception as exc:
            self._failed("info", exc)
            return None

from typing import Any, Awaitable, Callable, Dict, List, Optional

from .. import config
from ..kv import KVClient
from ..logging_config import get_logger
from ..sessions import SessionStore

logger = get_logger(__name__)

JobHandler = Callable[[Any], Awaitable[Any]]

KV_CLEANUP_MCP = "kv.cleanup.mcp"
KV_CLEANUP_PKCE = "kv.cleanup.pkce"
DB_CLEANUP_SESSIONS = "db.cleanup.sessions"

BUILTIN_JOBS = (KV_CLEANUP_MCP, KV_CLEANUP_PKCE, DB_CLEANUP_SESSIONS)


class JobRegistry:
    """Job name -> async handler. Filled at startup, read-only afterwards."""

    def __init__(self):
        self._handlers: Dict[str, JobHandler] = {}

    def register(self, name: str, handler: JobHandler) -> None:
        if name in self._handlers:
            # Last writer wins; a collision is a wiring mistake
            logger.warning("job_handler_replaced", job=name)
        self._handlers[name] = handler

    def lookup(self, name: str) -> Optional[JobHandler]:
        return self._handlers.get(name)

    def list_names(self) -> List[str]:
        return list(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers


async def _delete_all(kv: KVClient, keys: List[str]) -> int:
    deleted = 0
    for key in keys:
        await kv.delete(key)
        deleted += 1
    return deleted


def register_builtin_jobs(
    registry: JobRegistry,
    kv: KVClient,
    sessions: SessionStore,
    key_prefix: str = config.KV_KEY_PREFIX,
) -> None:
    tools_pattern = f"{key_prefix}:mcp:tools:*"
    oauth_pattern = f"{key_prefix}:mcp:oauth:*"
    pkce_pattern = f"{key_prefix}:pkce:*"

    # TTLs expire most MCP entries; this sweeps whatever is left
    async def cleanup_mcp(payload: Any = None) -> Dict[str, int]:
        tool_keys = await kv.keys(tools_pattern)
        oauth_keys = await kv.keys(oauth_pattern)
        deleted = await _delete_all(kv, tool_keys + oauth_keys)
        return {"deleted": deleted, "tool_keys": len(tool_keys), "oauth_keys": len(oauth_keys)}

    # Safety net for PKCE verifiers whose TTL was never set
    async def cleanup_pkce(payload: Any = None) -> Dict[str, int]:
        keys = await kv.keys(pkce_pattern)
        return {"deleted": await _delete_all(kv, keys)}

    async def cleanup_sessions(payload: Any = None) -> Dict[str, int]:
        return {"deleted_count": await sessions.cleanup_expired()}

    registry.register(KV_CLEANUP_MCP, cleanup_mcp)
    registry.register(KV_CLEANUP_PKCE, cleanup_pkce)
    registry.register(DB_CLEANUP_SESSIONS, cleanup_sessions)


def build_registry(
    kv: KVClient,
    sessions: SessionStore,
    key_prefix: str = config.KV_KEY_PREFIX,
) -> JobRegistry:
    registry = JobRegistry()
    register_builtin_jobs(registry, kv, sessions, key_prefix)
    return registry

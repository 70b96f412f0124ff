import base64
import gzip
import json

import pytest

from jobrelay.kv import COMPRESSION_THRESHOLD, KVClient, to_json


class UnreachableRedis:
    """Every call fails the way a dropped connection would."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise ConnectionError("connection refused")

        return fail


async def stored_entry(fake_redis, key):
    return json.loads(await fake_redis.get(key))


@pytest.mark.asyncio
async def test_small_value_is_stored_uncompressed(kv, fake_redis):
    await kv.set("k", {"a": 1})

    entry = await stored_entry(fake_redis, "k")
    assert entry["data"] == '{"a":1}'
    assert entry["compressed"] is False
    assert entry["timestamp"].endswith("Z")
    assert await kv.get("k") == {"a": 1}


@pytest.mark.asyncio
async def test_large_value_is_gzipped(kv, fake_redis):
    value = {"items": [{"id": i, "label": f"item-{i}"} for i in range(100)]}
    assert len(to_json(value).encode("utf-8")) > COMPRESSION_THRESHOLD

    await kv.set("big", value)

    entry = await stored_entry(fake_redis, "big")
    assert entry["compressed"] is True
    raw = gzip.decompress(base64.b64decode(entry["data"]))
    assert raw == to_json(value).encode("utf-8")
    assert await kv.get("big") == value


@pytest.mark.asyncio
async def test_threshold_is_measured_in_bytes(kv, fake_redis):
    # '"' + 998 chars + '"' is exactly 1000 bytes
    await kv.set("edge", "x" * 998)
    assert (await stored_entry(fake_redis, "edge"))["compressed"] is False

    await kv.set("over", "x" * 999)
    assert (await stored_entry(fake_redis, "over"))["compressed"] is True

    # 500 two-byte characters: 502 characters of JSON, 1002 bytes
    await kv.set("wide", "é" * 500)
    assert (await stored_entry(fake_redis, "wide"))["compressed"] is True
    assert await kv.get("wide") == "é" * 500


@pytest.mark.asyncio
async def test_explicit_compress_flag_wins(kv, fake_redis):
    await kv.set("small", [1, 2, 3], compress=True)
    await kv.set("large", "y" * 5000, compress=False)

    assert (await stored_entry(fake_redis, "small"))["compressed"] is True
    assert (await stored_entry(fake_redis, "large"))["compressed"] is False
    assert await kv.get("small") == [1, 2, 3]
    assert await kv.get("large") == "y" * 5000


@pytest.mark.asyncio
async def test_legacy_values_are_returned_verbatim(kv, fake_redis):
    await fake_redis.set("legacy:json", json.dumps({"x": 1, "data": "no envelope"}))
    await fake_redis.set("legacy:text", "plain text")

    assert await kv.get("legacy:json") == {"x": 1, "data": "no envelope"}
    assert await kv.get("legacy:text") == "plain text"


@pytest.mark.asyncio
async def test_missing_key_returns_none(kv):
    assert await kv.get("nope") is None


@pytest.mark.asyncio
async def test_corrupt_envelope_returns_none(kv, fake_redis):
    envelope = {"data": "%%% not base64 %%%", "compressed": True, "timestamp": "2024-01-01T00:00:00.000Z"}
    await fake_redis.set("broken", json.dumps(envelope))

    assert await kv.get("broken") is None


@pytest.mark.asyncio
async def test_ttl_and_key_operations(kv, fake_redis):
    await kv.set("perfagent:pkce:1", "v1", expiration_ttl=60)
    await kv.set("perfagent:pkce:2", "v2")
    await kv.set("perfagent:other", "v3")

    assert "perfagent:pkce:1" in fake_redis._expiry
    assert "perfagent:pkce:2" not in fake_redis._expiry
    assert sorted(await kv.keys("perfagent:pkce:*")) == ["perfagent:pkce:1", "perfagent:pkce:2"]

    await kv.expire("perfagent:pkce:2", 30)
    assert "perfagent:pkce:2" in fake_redis._expiry

    assert await kv.exists("perfagent:other") is True
    await kv.delete("perfagent:other")
    assert await kv.exists("perfagent:other") is False
    assert await kv.get("perfagent:other") is None


@pytest.mark.asyncio
async def test_expired_entries_disappear(kv, fake_redis):
    await kv.set("short", {"a": 1}, expiration_ttl=60)
    fake_redis._expiry["short"] = 0

    assert await kv.get("short") is None
    assert await kv.exists("short") is False


@pytest.mark.asyncio
async def test_health_probes(kv):
    assert await kv.ping() is True
    assert await kv.info() == "Redis connection: OK"


@pytest.mark.asyncio
async def test_unreachable_store_never_raises():
    kv = KVClient(UnreachableRedis())

    assert await kv.get("k") is None
    await kv.set("k", {"a": 1})
    await kv.set("k", {"a": 1}, expiration_ttl=10)
    await kv.delete("k")
    await kv.expire("k", 10)
    assert await kv.exists("k") is False
    assert await kv.keys("*") == []
    assert await kv.ping() is False
    assert await kv.info() is None


@pytest.mark.asyncio
async def test_unserializable_value_is_swallowed(kv, fake_redis):
    await kv.set("bad", {"when": object()})

    assert await fake_redis.get("bad") is None

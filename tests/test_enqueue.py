import json

import httpx
import pytest

from jobrelay.jobs.enqueue import EnqueueClient, enqueue_recurring_cleanup
from jobrelay.jobs.errors import BrokerConfigError, EnqueueError
from jobrelay.schemas import EnqueueOptions, Job

from broker_fakes import APP_URL, BROKER_URL


@pytest.mark.asyncio
async def test_publish_sends_job_to_webhook_destination(enqueue_client, broker):
    ack = await enqueue_client.enqueue(Job(name="kv.cleanup.pkce", payload={"reason": "test"}))

    assert ack["messageId"].startswith("msg_")
    [message] = broker.published
    assert message["destination"] == f"{APP_URL}/jobs-webhook"
    assert message["queue"] is None
    assert json.loads(message["body"]) == {"name": "kv.cleanup.pkce", "payload": {"reason": "test"}}
    assert message["headers"]["Authorization"] == "Bearer test-token"


@pytest.mark.asyncio
async def test_options_become_broker_headers(enqueue_client, broker):
    options = EnqueueOptions(delay=30, not_before=1900000000, retries=0, deduplication_id="dedup-1")

    await enqueue_client.enqueue(Job(name="kv.cleanup.mcp"), options)

    headers = broker.published[0]["headers"]
    assert headers["Upstash-Delay"] == "30s"
    assert headers["Upstash-Not-Before"] == "1900000000"
    assert headers["Upstash-Retries"] == "0"
    assert headers["Upstash-Deduplication-Id"] == "dedup-1"


@pytest.mark.asyncio
async def test_unset_options_send_no_headers(enqueue_client, broker):
    await enqueue_client.enqueue(Job(name="kv.cleanup.mcp"))

    headers = broker.published[0]["headers"]
    for name in ("Upstash-Delay", "Upstash-Not-Before", "Upstash-Retries", "Upstash-Deduplication-Id"):
        assert name not in headers


@pytest.mark.asyncio
async def test_queue_uses_enqueue_endpoint(enqueue_client, broker):
    await enqueue_client.enqueue(Job(name="kv.cleanup.mcp"), EnqueueOptions(queue="maintenance"))

    assert broker.published[0]["queue"] == "maintenance"
    assert broker.published[0]["destination"] == f"{APP_URL}/jobs-webhook"


@pytest.mark.asyncio
async def test_deduplication_id_collapses_submissions(enqueue_client, broker):
    options = EnqueueOptions.model_validate({"deduplicationId": "nightly-2024-01-01"})

    first = await enqueue_client.enqueue(Job(name="kv.cleanup.mcp"), options)
    second = await enqueue_client.enqueue(Job(name="kv.cleanup.mcp"), options)

    assert len(broker.published) == 1
    assert second["messageId"] == first["messageId"]
    assert second["deduplicated"] is True


@pytest.mark.asyncio
async def test_broker_rejection_raises(enqueue_client, broker):
    broker.fail_with = 500

    with pytest.raises(EnqueueError):
        await enqueue_client.enqueue(Job(name="kv.cleanup.mcp"))


@pytest.mark.asyncio
async def test_unreachable_broker_raises():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = EnqueueClient(token="t", base_url=BROKER_URL, app_url=APP_URL, transport=httpx.MockTransport(refuse))

    with pytest.raises(EnqueueError):
        await client.enqueue(Job(name="kv.cleanup.mcp"))


@pytest.mark.asyncio
async def test_missing_app_url_is_a_config_error(broker):
    client = EnqueueClient(token="t", base_url=BROKER_URL, app_url="", transport=broker.transport)

    with pytest.raises(BrokerConfigError):
        await client.enqueue(Job(name="kv.cleanup.mcp"))
    assert broker.requests == []


def test_app_url_gets_a_scheme(monkeypatch):
    from jobrelay import config

    monkeypatch.delenv("APP_URL", raising=False)
    monkeypatch.setenv("VERCEL_URL", "my-app.vercel.app")
    assert config.app_url() == "https://my-app.vercel.app"

    monkeypatch.setenv("APP_URL", "http://localhost:8000/")
    assert config.app_url() == "http://localhost:8000"


@pytest.mark.asyncio
async def test_recurring_cleanup_is_delayed(enqueue_client, broker):
    await enqueue_recurring_cleanup(enqueue_client)

    message = broker.published[0]
    assert json.loads(message["body"])["name"] == "kv.cleanup.mcp"
    assert message["headers"]["Upstash-Delay"] == "300s"

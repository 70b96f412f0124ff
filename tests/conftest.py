import os

import pytest
from httpx import ASGITransport, AsyncClient

os.environ["TESTING"] = "1"

from broker_fakes import APP_URL, BROKER_URL, CURRENT_KEY, NEXT_KEY, FakeBroker
from jobrelay.jobs.enqueue import EnqueueClient
from jobrelay.jobs.schedules import ScheduleManager
from jobrelay.jobs.signature import SignatureReceiver
from jobrelay.kv import KVClient
from jobrelay.main import create_app
from jobrelay.redis_helper import AsyncInMemoryRedis
from jobrelay.sessions import SessionStore


@pytest.fixture
def fake_redis():
    return AsyncInMemoryRedis()


@pytest.fixture
def kv(fake_redis):
    return KVClient(fake_redis)


@pytest.fixture
def sessions(fake_redis):
    return SessionStore(fake_redis, key_prefix="perfagent")


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def enqueue_client(broker):
    return EnqueueClient(token="test-token", base_url=BROKER_URL, app_url=APP_URL, transport=broker.transport)


@pytest.fixture
def schedule_manager(broker):
    return ScheduleManager(token="test-token", base_url=BROKER_URL, app_url=APP_URL, transport=broker.transport)


@pytest.fixture
def receiver():
    return SignatureReceiver(CURRENT_KEY, NEXT_KEY)


@pytest.fixture
def app(fake_redis, enqueue_client, schedule_manager, receiver):
    return create_app(
        redis_client=fake_redis,
        enqueue_client=enqueue_client,
        schedule_manager=schedule_manager,
        receiver=receiver,
        app_url=APP_URL,
    )


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac

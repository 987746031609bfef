# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed ValkeyCache instances
- In-memory and Valkey-backed state stores (and a fixture parametrized over both)
- A wired engine with a static signal provider
- A payload builder for tracking snippet posts
"""

from datetime import datetime, timezone

import fakeredis
import pytest

from visitguard.base.signals import StaticSignalProvider
from visitguard.engine import build_engine
from visitguard.infrastructure.cache import ValkeyCache
from visitguard.infrastructure.stores.memory import create_memory_stores
from visitguard.infrastructure.stores.valkey import create_valkey_stores

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real ValkeyCache behavior.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def fake_cache(fake_redis):
    """A ValkeyCache wrapping the fakeredis client.

    Avoids needing a real Valkey/Redis server for unit tests while
    exercising the full ValkeyCache API surface.
    """
    return ValkeyCache(client=fake_redis)


@pytest.fixture()
def memory_stores():
    return create_memory_stores(max_visits_per_store=1000)


@pytest.fixture()
def valkey_stores(fake_cache):
    return create_valkey_stores(fake_cache, max_visits_per_store=1000)


@pytest.fixture(params=["memory", "valkey"])
def stores(request):
    """State stores for each backend; tests using it run once per backend."""
    return request.getfixturevalue(f"{request.param}_stores")


@pytest.fixture()
def provider():
    """A static provider; tests register bundles per request id."""
    return StaticSignalProvider()


@pytest.fixture()
def engine(stores, provider):
    """A fully wired engine over the parametrized stores."""
    return build_engine(stores=stores, provider=provider)


@pytest.fixture()
def make_payload():
    """Build a snippet payload with camelCase keys, as posted by the browser."""

    def _make(
        store_id="shop-1",
        visitor_id="visitor-1",
        session_key="req-1",
        path="/",
        timestamp=BASE_TIME,
        dev_tools_open=None,
    ):
        payload = {
            "storeId": store_id,
            "visitorId": visitor_id,
            "requestId": session_key,
            "page": path,
        }
        if timestamp is not None:
            payload["timestamp"] = timestamp.isoformat()
        if dev_tools_open is not None:
            payload["clientSignals"] = {"devToolsOpen": dev_tools_open}
        return payload

    return _make


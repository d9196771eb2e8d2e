import asyncio
import json

from services.thread_registry import ThreadRegistry


class _FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str):
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.ttls[key] = ex
        return True


class _BrokenRedis(_FakeRedis):
    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        raise ConnectionError("redis down")


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_lookup_returns_none_when_missing() -> None:
    registry = ThreadRegistry(redis_client=_FakeRedis(), ttl_seconds=60)

    assert asyncio.run(registry.lookup("100.1")) is None


def test_create_then_lookup_returns_same_thread() -> None:
    redis_client = _FakeRedis()
    clock = _Clock(1_000.0)
    registry = ThreadRegistry(redis_client=redis_client, ttl_seconds=3 * 60 * 60, clock=clock)

    entry = asyncio.run(registry.create("100.1", "thread_abc"))

    assert entry.expires_at == 1_000 + 3 * 60 * 60
    key = ThreadRegistry.build_key("100.1")
    assert redis_client.ttls[key] == 3 * 60 * 60
    assert json.loads(redis_client.store[key])["ai_conversation_id"] == "thread_abc"

    clock.now = 5_000.0
    assert asyncio.run(registry.lookup("100.1")) == "thread_abc"
    assert asyncio.run(registry.lookup("100.1")) == "thread_abc"


def test_expired_entry_still_in_store_is_treated_as_missing() -> None:
    redis_client = _FakeRedis()
    clock = _Clock(1_000.0)
    registry = ThreadRegistry(redis_client=redis_client, ttl_seconds=60, clock=clock)
    asyncio.run(registry.create("100.1", "thread_abc"))

    clock.now = 1_060.0

    assert ThreadRegistry.build_key("100.1") in redis_client.store
    assert asyncio.run(registry.lookup("100.1")) is None


def test_malformed_entry_is_treated_as_missing() -> None:
    redis_client = _FakeRedis()
    redis_client.store[ThreadRegistry.build_key("100.1")] = "not json"
    registry = ThreadRegistry(redis_client=redis_client, ttl_seconds=60)

    assert asyncio.run(registry.lookup("100.1")) is None


def test_create_safe_swallows_storage_errors() -> None:
    registry = ThreadRegistry(redis_client=_BrokenRedis(), ttl_seconds=60)

    assert asyncio.run(registry.create_safe("100.1", "thread_abc")) is None

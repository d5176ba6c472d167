"""Unit tests for the in-memory and Redis stores, key layout, and tenant routing."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_memory.core.exceptions import ConfigurationError, TenantNotFoundError
from agent_memory.storage.in_memory import InMemoryStore
from agent_memory.storage.keys import RedisKeys
from agent_memory.storage.redis import RedisStore
from agent_memory.storage.router import StoreFactory


class TestRedisKeys:
    def test_key_layout(self):
        assert RedisKeys.user_bucket("u1", "svc", "facts") == "user:u1:service:svc:bucket:facts"
        assert RedisKeys.session_messages("svc", "s1") == "service:svc:session:s1:messages"
        assert RedisKeys.session_metadata("svc", "s1") == "service:svc:session:s1:metadata"
        assert RedisKeys.service_config("svc") == "service_config:svc"
        assert RedisKeys.SERVICES_INDEX == "services:all"


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_append_and_list_preserve_order(self):
        store = InMemoryStore()
        await store.append_record("k", {"n": 1})
        await store.append_record("k", {"n": 2})
        assert await store.list_records("k") == [{"n": 1}, {"n": 2}]

    @pytest.mark.asyncio
    async def test_list_limit(self):
        store = InMemoryStore()
        for i in range(5):
            await store.append_record("k", i)
        assert await store.list_records("k", limit=2) == [0, 1]

    @pytest.mark.asyncio
    async def test_replace_list_and_empty_replace_deletes(self):
        store = InMemoryStore()
        await store.append_record("k", "a")
        await store.replace_list("k", ["b", "c"])
        assert await store.list_records("k") == ["b", "c"]
        await store.replace_list("k", [])
        assert await store.list_records("k") == []
        assert await store.delete("k") is False

    @pytest.mark.asyncio
    async def test_raw_access_keeps_undecodable_entries(self):
        store = InMemoryStore()
        await store.replace_raw("k", ['{"a": 1}', "not-json{"])
        assert await store.list_raw("k") == ['{"a": 1}', "not-json{"]
        assert await store.list_records("k") == [{"a": 1}]
        await store.replace_raw("k", [])
        assert await store.list_raw("k") == []
        assert await store.delete("k") is False

    @pytest.mark.asyncio
    async def test_expired_keys_disappear(self, monkeypatch):
        clock = {"now": 1000.0}
        monkeypatch.setattr("agent_memory.storage.in_memory.time.monotonic", lambda: clock["now"])
        store = InMemoryStore()
        await store.append_record("k", "a")
        await store.expire("k", 10)
        clock["now"] += 9
        assert await store.list_records("k") == ["a"]
        clock["now"] += 2
        assert await store.list_records("k") == []

    @pytest.mark.asyncio
    async def test_hash_and_set_operations(self):
        store = InMemoryStore()
        await store.hset("h", {"a": "1"})
        await store.hset("h", {"b": "2"})
        assert await store.hgetall("h") == {"a": "1", "b": "2"}
        await store.sadd("s", "x", "y")
        await store.srem("s", "x")
        assert await store.smembers("s") == {"y"}

    @pytest.mark.asyncio
    async def test_json_values(self):
        store = InMemoryStore()
        assert await store.get_json("missing") is None
        await store.set_json("cfg", {"id": "svc"})
        assert await store.get_json("cfg") == {"id": "svc"}

    @pytest.mark.asyncio
    async def test_lock_is_reused_per_name(self):
        store = InMemoryStore()
        assert store.lock("a") is store.lock("a")
        async with store.lock("a"):
            assert store.lock("a").locked()


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_append_serialises_json(self):
        client = MagicMock()
        client.rpush = AsyncMock(return_value=1)
        store = RedisStore(client)
        await store.append_record("k", {"text": "hi"})
        client.rpush.assert_awaited_once_with("k", json.dumps({"text": "hi"}))

    @pytest.mark.asyncio
    async def test_list_skips_undecodable_entries(self):
        client = MagicMock()
        client.lrange = AsyncMock(return_value=['{"a": 1}', "not-json", '{"b": 2}'])
        store = RedisStore(client)
        assert await store.list_records("k") == [{"a": 1}, {"b": 2}]
        client.lrange.assert_awaited_once_with("k", 0, -1)

    @pytest.mark.asyncio
    async def test_list_limit_translates_to_range(self):
        client = MagicMock()
        client.lrange = AsyncMock(return_value=[])
        store = RedisStore(client)
        await store.list_records("k", limit=3)
        client.lrange.assert_awaited_once_with("k", 0, 2)

    @pytest.mark.asyncio
    async def test_replace_list_uses_transaction(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock()
        pipe.__aenter__ = AsyncMock(return_value=pipe)
        pipe.__aexit__ = AsyncMock(return_value=False)
        client = MagicMock()
        client.pipeline = MagicMock(return_value=pipe)
        store = RedisStore(client)

        await store.replace_list("k", [{"a": 1}])

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.delete.assert_called_once_with("k")
        pipe.rpush.assert_called_once_with("k", json.dumps({"a": 1}))
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_raw_returns_stored_strings(self):
        client = MagicMock()
        client.lrange = AsyncMock(return_value=['{"a": 1}', "not-json"])
        store = RedisStore(client)
        assert await store.list_raw("k") == ['{"a": 1}', "not-json"]
        client.lrange.assert_awaited_once_with("k", 0, -1)

    @pytest.mark.asyncio
    async def test_empty_replace_raw_only_deletes(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock()
        pipe.__aenter__ = AsyncMock(return_value=pipe)
        pipe.__aexit__ = AsyncMock(return_value=False)
        client = MagicMock()
        client.pipeline = MagicMock(return_value=pipe)

        await RedisStore(client).replace_raw("k", [])

        pipe.delete.assert_called_once_with("k")
        pipe.rpush.assert_not_called()
        pipe.execute.assert_awaited_once()

    def test_lock_delegates_to_client(self):
        client = MagicMock()
        store = RedisStore(client)
        store.lock("lock:k")
        client.lock.assert_called_once()
        assert client.lock.call_args.args == ("lock:k",)


class TestStoreFactory:
    def test_memory_urls_share_a_store(self):
        factory = StoreFactory()
        assert factory.create("memory://a") is factory.create("memory://a")
        assert factory.create("memory://a") is not factory.create("memory://b")

    def test_redis_url_builds_redis_store(self):
        store = StoreFactory().create("redis://localhost:6379/0")
        assert isinstance(store, RedisStore)

    def test_unknown_scheme_rejected(self):
        with pytest.raises(ConfigurationError):
            StoreFactory().create("postgres://db")


class TestTenantStoreRouter:
    @pytest.mark.asyncio
    async def test_resolve_returns_config_and_store(self, router, service_registry, service_config, tenant_store):
        await service_registry.create(service_config)
        config, store = await router.resolve("travel")
        assert config.id == "travel"
        assert store is tenant_store

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, router):
        with pytest.raises(TenantNotFoundError):
            await router.get_config("nope")

    def test_missing_store_url_is_configuration_error(self, router, service_config):
        config = service_config.model_copy(update={"store_url": None})
        with pytest.raises(ConfigurationError):
            router.store_for(config)

    def test_handles_are_cached(self, router, service_config):
        assert router.store_for(service_config) is router.store_for(service_config)

"""Pytest fixtures shared by the unit tests."""

import pytest

from agent_memory.core.enums import ServiceType
from agent_memory.core.schemas import (
    LongTermBucket,
    MemoryRecord,
    SchemaField,
    ServiceConfig,
    ServiceSchemas,
    TextContent,
    TranscriptTurn,
)
from agent_memory.memory.services import ServiceRegistry
from agent_memory.storage.in_memory import InMemoryStore
from agent_memory.storage.router import StoreFactory, TenantStoreRouter

TENANT_STORE_URL = "memory://tenant-travel"


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Auto-clear the settings LRU cache after each test to prevent pollution."""
    yield
    from agent_memory.core.config import get_settings

    get_settings.cache_clear()


@pytest.fixture
def store_factory():
    return StoreFactory()


@pytest.fixture
def global_store(store_factory):
    return store_factory.create("memory://global")


@pytest.fixture
def tenant_store(store_factory) -> InMemoryStore:
    return store_factory.create(TENANT_STORE_URL)


@pytest.fixture
def service_registry(global_store):
    return ServiceRegistry(global_store)


@pytest.fixture
def router(service_registry, store_factory):
    return TenantStoreRouter(service_registry, factory=store_factory)


@pytest.fixture
def service_config() -> ServiceConfig:
    """Travel-agent tenant with two built-in categories and one structured bucket."""
    return ServiceConfig(
        id="travel",
        name="Travel Agent",
        store_url=TENANT_STORE_URL,
        service_type=ServiceType.FIXED,
        agent_purpose="Book flights and hotels",
        memory_categories=["preferences", "facts"],
        schemas=ServiceSchemas(
            long_term_buckets=[
                LongTermBucket(
                    name="past_trips",
                    description="Trips the user has taken",
                    schema_fields=[
                        SchemaField(name="destination", type="string", required=True),
                        SchemaField(name="nights", type="number"),
                    ],
                ),
                LongTermBucket(name="notes", description="Free-form notes", is_unstructured=True),
            ]
        ),
    )


@pytest.fixture
def make_turn():
    """Factory for transcript turns."""

    def _make(text: str, role: str = "user", session_id: str = "s1", user_id: str = "u1") -> TranscriptTurn:
        return TranscriptTurn(user_id=user_id, session_id=session_id, role=role, text=text)

    return _make


@pytest.fixture
def make_record():
    """Factory for text memory records."""

    def _make(text: str, category: str = "preferences", user_id: str = "u1") -> MemoryRecord:
        return MemoryRecord(category=category, user_id=user_id, content=TextContent(text=text))

    return _make

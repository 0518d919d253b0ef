"""Tests for RecordStore implementations (in-memory and SQLAlchemy)."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from core.domain.repositories.record_store import EVENTS, WORKFLOWS
from core.infrastructure.adapters.persistence.memory_record_store import InMemoryRecordStore
from core.infrastructure.database.config import get_session_factory, init_database
from core.infrastructure.database.repositories.sqlalchemy_record_store import SQLAlchemyRecordStore


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(params=["memory", "sqlalchemy"])
async def store(request):
    if request.param == "memory":
        yield InMemoryRecordStore()
        return

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_database(engine)
    yield SQLAlchemyRecordStore(get_session_factory(engine))
    await engine.dispose()


@pytest.mark.asyncio
async def test_put_and_get(store):
    await store.put(WORKFLOWS, "wf-1", {"id": "wf-1", "steps": [{"id": "step-1"}]})

    assert await store.get(WORKFLOWS, "wf-1") == {"id": "wf-1", "steps": [{"id": "step-1"}]}
    assert await store.get(WORKFLOWS, "wf-2") is None
    assert await store.get(EVENTS, "wf-1") is None


@pytest.mark.asyncio
async def test_put_replaces_existing_record(store):
    await store.put(WORKFLOWS, "wf-1", {"status": "pending"})
    await store.put(WORKFLOWS, "wf-1", {"status": "active"})

    assert await store.get(WORKFLOWS, "wf-1") == {"status": "active"}
    assert len(await store.list(WORKFLOWS)) == 1


@pytest.mark.asyncio
async def test_list_keeps_insertion_order_per_collection(store):
    for record_id in ("b", "a", "c"):
        await store.put(EVENTS, record_id, {"id": record_id})
    await store.put(WORKFLOWS, "wf-1", {"id": "wf-1"})

    assert [r["id"] for r in await store.list(EVENTS)] == ["b", "a", "c"]
    assert await store.list("empty") == []


@pytest.mark.asyncio
async def test_delete(store):
    await store.put(EVENTS, "evt-1", {"id": "evt-1"})

    assert await store.delete(EVENTS, "evt-1") is True
    assert await store.delete(EVENTS, "evt-1") is False
    assert await store.get(EVENTS, "evt-1") is None


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = InMemoryRecordStore()
    record = {"data": {"n": 1}}
    await store.put(EVENTS, "evt-1", record)

    record["data"]["n"] = 2
    loaded = await store.get(EVENTS, "evt-1")
    loaded["data"]["n"] = 3

    assert await store.get(EVENTS, "evt-1") == {"data": {"n": 1}}

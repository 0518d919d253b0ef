"""Tests for SyncCoordinator - routes and single-flight operations."""

import asyncio

import pytest

from core.domain.enums import SyncStatus
from core.domain.exceptions import NotFoundError, TerminalServiceError, ValidationError
from orchestration.sync import parse_scheduled_job, routes_from_mapping
from tests.fakes import HangingAdapter, ScriptedAdapter, build_engine, make_registry


@pytest.mark.asyncio
async def test_sync_completes_with_reconciled_data():
    engine = build_engine()

    operation = await engine.sync.sync("business-vr", "biz-1", "vr-9", owner="user-1")
    assert operation.status in (SyncStatus.PENDING, SyncStatus.IN_PROGRESS)
    assert operation.workflow_id

    assert await engine.tasks.drain(timeout=2)
    done = await engine.sync.get(operation.id)

    assert done.status == SyncStatus.COMPLETED
    assert done.synced_data["service"] == "v4deaf"
    assert done.synced_data["sourceId"] == "biz-1"
    assert done.synced_data["targetId"] == "vr-9"
    assert done.synced_at is not None
    assert done.error is None


@pytest.mark.asyncio
async def test_concurrent_requests_for_same_key_share_one_operation():
    source = HangingAdapter({"recordId": "biz-1", "record": {"name": "Acme"}})
    engine = build_engine(registry=make_registry(business=source))

    first, second = await asyncio.gather(
        engine.sync.sync("business-vr", "biz-1", "vr-9"),
        engine.sync.sync("business-vr", "biz-1", "vr-9"),
    )
    assert first.id == second.id

    await asyncio.wait_for(source.started.wait(), timeout=1)
    third = await engine.sync.sync("business-vr", "biz-1", "vr-9")
    assert third.id == first.id
    other = await engine.sync.sync("business-vr", "biz-2", "vr-9")
    assert other.id != first.id

    source.release.set()
    assert await engine.tasks.drain(timeout=2)

    done = await engine.sync.get(first.id)
    assert done.status == SyncStatus.COMPLETED
    assert done.synced_data["fields"] == ["name"]
    assert len(await engine.sync.list(sync_type="business-vr")) == 2


@pytest.mark.asyncio
async def test_finished_sync_lets_a_new_operation_start():
    engine = build_engine()

    first = await engine.sync.sync("full", "biz-1", "int-1")
    assert await engine.tasks.drain(timeout=2)
    second = await engine.sync.sync("full", "biz-1", "int-1")
    assert await engine.tasks.drain(timeout=2)

    assert second.id != first.id
    assert (await engine.sync.get(second.id)).status == SyncStatus.COMPLETED


@pytest.mark.asyncio
async def test_failed_step_fails_the_operation():
    target = ScriptedAdapter([TerminalServiceError("target rejected record")])
    engine = build_engine(registry=make_registry(v4deaf=target))

    operation = await engine.sync.sync("business-vr", "biz-1", "vr-9")
    assert await engine.tasks.drain(timeout=2)

    failed = await engine.sync.get(operation.id)
    assert failed.status == SyncStatus.FAILED
    assert "target rejected record" in failed.error
    assert [op.id for op in await engine.sync.list(status=SyncStatus.FAILED)] == [failed.id]


@pytest.mark.asyncio
async def test_unknown_sync_type_is_rejected():
    engine = build_engine()

    with pytest.raises(ValidationError) as exc_info:
        await engine.sync.sync("nope", "a", "b")
    assert "business-vr" in exc_info.value.details["supported"]

    with pytest.raises(ValidationError):
        await engine.sync.sync("full", "", "b")


@pytest.mark.asyncio
async def test_get_unknown_operation():
    engine = build_engine()

    with pytest.raises(NotFoundError):
        await engine.sync.get("sync-missing")


def test_routes_and_scheduled_jobs_parse():
    routes = routes_from_mapping({"pinksync-platform": ["pinksync", "internal"]})

    route = routes["pinksync-platform"]
    assert (route.source_service, route.target_service) == ("pinksync", "internal")
    assert route.fetch_action == "fetch"
    assert parse_scheduled_job("full:biz-1:int-1") == ("full", "biz-1", "int-1")

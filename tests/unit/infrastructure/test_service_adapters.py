"""Tests for service adapters and the webhook transport."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.domain.exceptions import TerminalServiceError, TransientServiceError
from core.infrastructure.adapters.services import HttpServiceAdapter, InternalServiceAdapter
from core.infrastructure.adapters.webhooks import AiohttpWebhookSender


@pytest_asyncio.fixture
async def service_server():
    """Local HTTP service with one route per behaviour."""
    received = []

    async def create(request: web.Request) -> web.Response:
        received.append({"body": await request.json(), "headers": dict(request.headers)})
        return web.json_response({"entityId": "llc-1"})

    async def busy(request: web.Request) -> web.Response:
        return web.Response(status=503, text="busy")

    async def rejected(request: web.Request) -> web.Response:
        return web.Response(status=422, text="missing state")

    async def empty(request: web.Request) -> web.Response:
        return web.Response(status=204)

    async def listing(request: web.Request) -> web.Response:
        return web.json_response([1, 2])

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.json_response({})

    app = web.Application()
    app.router.add_post("/create", create)
    app.router.add_post("/busy", busy)
    app.router.add_post("/rejected", rejected)
    app.router.add_post("/empty", empty)
    app.router.add_post("/listing", listing)
    app.router.add_post("/slow", slow)

    server = TestServer(app)
    await server.start_server()
    server.received = received
    yield server
    await server.close()


def adapter_for(server, **kwargs) -> HttpServiceAdapter:
    return HttpServiceAdapter("northwest", str(server.make_url("/")), **kwargs)


@pytest.mark.asyncio
async def test_http_adapter_posts_parameters(service_server):
    adapter = adapter_for(service_server, api_key="key-1")

    result = await adapter.invoke("create", {"state": "WY"})

    assert result == {"entityId": "llc-1"}
    request = service_server.received[0]
    assert request["body"] == {"state": "WY"}
    assert request["headers"]["Authorization"] == "Bearer key-1"


@pytest.mark.asyncio
async def test_http_adapter_maps_status_codes(service_server):
    adapter = adapter_for(service_server)

    with pytest.raises(TransientServiceError):
        await adapter.invoke("busy", {})
    with pytest.raises(TerminalServiceError) as exc_info:
        await adapter.invoke("rejected", {})
    assert exc_info.value.details["status"] == 422

    assert await adapter.invoke("empty", {}) == {}
    assert await adapter.invoke("listing", {}) == {"value": [1, 2]}


@pytest.mark.asyncio
async def test_http_adapter_timeout_is_transient(service_server):
    adapter = adapter_for(service_server, timeout_seconds=0.05)

    with pytest.raises(TransientServiceError):
        await adapter.invoke("slow", {})


def test_http_adapter_requires_base_url():
    with pytest.raises(ValueError):
        HttpServiceAdapter("mux", "")

    adapter = HttpServiceAdapter("mux", "https://api.mux.example/", api_key="k")
    assert adapter.action_url("/assets") == "https://api.mux.example/assets"
    assert adapter.describe()["authenticated"] is True


@pytest.mark.asyncio
async def test_internal_adapter_fetch_and_reconcile():
    adapter = InternalServiceAdapter("business")

    fetched = await adapter.invoke("fetch", {"sourceId": "biz-1", "record": {"name": "Acme"}})
    reconciled = await adapter.invoke("reconcile", {"targetId": "vr-1", "input": fetched})

    assert fetched["recordId"] == "biz-1"
    assert reconciled["sourceId"] == "biz-1"
    assert reconciled["fields"] == ["name"]
    assert await adapter.invoke("echo", {"a": 1}) == {"echo": {"a": 1}}


@pytest.mark.asyncio
async def test_internal_adapter_rejects_unknown_action():
    adapter = InternalServiceAdapter("v4deaf")

    async def caption(parameters):
        return {"captioned": parameters["assetId"]}

    adapter.register_action("caption", caption)

    assert await adapter.invoke("caption", {"assetId": "a-1"}) == {"captioned": "a-1"}
    with pytest.raises(TerminalServiceError):
        await adapter.invoke("translate", {})
    with pytest.raises(TerminalServiceError):
        await adapter.invoke("fetch", {})


@pytest.mark.asyncio
async def test_webhook_sender_reports_status(service_server):
    sender = AiohttpWebhookSender()

    ok = await sender.send(str(service_server.make_url("/create")), b'{"a":1}', {"Content-Type": "application/json"}, 5)
    busy = await sender.send(str(service_server.make_url("/busy")), b"{}", {}, 5)

    assert ok == 200
    assert busy == 503
    with pytest.raises(TransientServiceError):
        await sender.send(str(service_server.make_url("/slow")), b"{}", {}, 0.05)

"""Tests for replication bridges."""

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from study_forest.sync.replication import (
    HttpReplicationBridge,
    InMemoryReplicationBridge,
    scoped_key,
)


def test_scoped_key():
    assert scoped_key("abc", "forest") == "abc/forest"


async def test_in_memory_bridge_last_write_wins():
    bridge = InMemoryReplicationBridge()
    bridge.push("s", "forest", "[1]")
    bridge.push("s", "forest", "[2]")

    assert await bridge.pull_once("s", "forest") == "[2]"
    assert await bridge.pull_once("other", "forest") is None


@pytest.fixture
async def kv_server():
    """A tiny key/value service speaking the replication protocol."""
    documents = {}

    async def put(request):
        documents[(request.match_info["space"], request.match_info["key"])] = await request.text()
        return web.json_response({"status": "ok"})

    async def get(request):
        if request.match_info["key"] == "broken":
            return web.Response(status=500, text="boom")
        value = documents.get((request.match_info["space"], request.match_info["key"]))
        if value is None:
            raise web.HTTPNotFound()
        return web.Response(text=value, content_type="application/json")

    app = web.Application()
    app.router.add_put("/spaces/{space}/{key}", put)
    app.router.add_get("/spaces/{space}/{key}", get)

    server = TestServer(app)
    await server.start_server()
    server.documents = documents
    yield server
    await server.close()


async def test_http_bridge_push_then_pull(kv_server):
    bridge = HttpReplicationBridge(str(kv_server.make_url("/")))

    bridge.push("space", "forest", '[{"id": "a"}]')
    assert bridge.status["pending_pushes"] == 1
    await bridge.close()

    assert kv_server.documents[("space", "forest")] == '[{"id": "a"}]'

    reader = HttpReplicationBridge(str(kv_server.make_url("")))
    try:
        assert await reader.pull_once("space", "forest") == '[{"id": "a"}]'
        assert await reader.pull_once("space", "sessionHistory") is None
    finally:
        await reader.close()


async def test_http_bridge_pull_error_raises(kv_server):
    bridge = HttpReplicationBridge(str(kv_server.make_url("")))
    try:
        with pytest.raises(aiohttp.ClientResponseError):
            await bridge.pull_once("space", "broken")
    finally:
        await bridge.close()


async def test_http_bridge_push_failure_is_recorded():
    # Nothing listens on port 9
    bridge = HttpReplicationBridge("http://127.0.0.1:9", timeout_seconds=2)
    bridge.push("space", "forest", "[]")
    await bridge.close()

    assert bridge.status["last_push_error"]
    assert bridge.status["pending_pushes"] == 0

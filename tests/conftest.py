"""
Shared fixtures: an in-process fake of the Consul HTTP API
"""
import asyncio
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional, Set

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer


class FakeConsul:
    """
    Minimal Consul API backed by in-memory state

    Agent token assignment is served both on the real path and under a
    '/{node}' prefix, so tests can point several nodes at one server.
    """

    def __init__(self):
        self.alive_status = 200
        self.leader_responses: List[Any] = ["10.0.0.1:8300"]
        self.peers: Any = ["10.0.0.1:8300", "10.0.0.2:8300"]
        self.nodes: List[Dict[str, str]] = []
        self.policies: List[Dict[str, Any]] = []
        self.tokens: List[Dict[str, Any]] = []
        self.acl_status = 200
        self.failing_agents: Set[str] = set()
        self.assigned_tokens: Dict[str, str] = {}
        self.requests: List[tuple] = []
        self.seen_tokens: Set[Optional[str]] = set()

        self.app = web.Application(middlewares=[self.record])
        self.app.router.add_get('/', self.root)
        self.app.router.add_get('/v1/status/leader', self.leader)
        self.app.router.add_get('/v1/status/peers', self.status_peers)
        self.app.router.add_get('/v1/catalog/nodes', self.catalog_nodes)
        self.app.router.add_get('/v1/acl/policies', self.list_policies)
        self.app.router.add_put('/v1/acl/policy', self.create_policy)
        self.app.router.add_get('/v1/acl/tokens', self.list_tokens)
        self.app.router.add_put('/v1/acl/token', self.create_token)
        self.app.router.add_put('/v1/agent/token/agent', self.assign_token)
        self.app.router.add_put('/{node}/v1/agent/token/agent', self.assign_token)

    @web.middleware
    async def record(self, request, handler):
        self.requests.append((request.method, request.path))
        self.seen_tokens.add(request.headers.get('X-Consul-Token'))
        return await handler(request)

    def count(self, method: str, path: str) -> int:
        return len([r for r in self.requests if r == (method, path)])

    async def root(self, request):
        return web.Response(status=self.alive_status, text="Consul Agent")

    async def leader(self, request):
        # Pop queued answers; the last one sticks
        if len(self.leader_responses) > 1:
            return web.json_response(self.leader_responses.pop(0))
        return web.json_response(self.leader_responses[0])

    async def status_peers(self, request):
        return web.json_response(self.peers)

    async def catalog_nodes(self, request):
        return web.json_response(self.nodes)

    async def list_policies(self, request):
        if self.acl_status != 200:
            return web.Response(status=self.acl_status)
        return web.json_response([
            {"ID": p["ID"], "Name": p["Name"], "Description": p["Description"]}
            for p in self.policies
        ])

    async def create_policy(self, request):
        if self.acl_status != 200:
            return web.Response(status=self.acl_status)
        body = await request.json()
        policy = {"ID": str(uuid.uuid4()), **body}
        self.policies.append(policy)
        return web.json_response(policy)

    async def list_tokens(self, request):
        if self.acl_status != 200:
            return web.Response(status=self.acl_status)
        return web.json_response(self.tokens)

    async def create_token(self, request):
        if self.acl_status != 200:
            return web.Response(status=self.acl_status)
        body = await request.json()
        token = {
            "AccessorID": body.get("AccessorID") or str(uuid.uuid4()),
            "SecretID": body.get("SecretID") or str(uuid.uuid4()),
            "Description": body.get("Description", ""),
            "Policies": body.get("Policies", []),
        }
        self.tokens.append(token)
        return web.json_response(token)

    async def assign_token(self, request):
        node = request.match_info.get('node', request.host)
        if node in self.failing_agents:
            return web.Response(status=500)
        body = await request.json()
        self.assigned_tokens[node] = body["Token"]
        return web.Response(status=200)


@pytest.fixture
def fake_consul():
    return FakeConsul()


@pytest_asyncio.fixture
async def consul_server(fake_consul):
    server = TestServer(fake_consul.app, host="127.0.0.1")
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def consul_api(consul_server):
    return f"http://127.0.0.1:{consul_server.port}"


@pytest.fixture
def threaded_consul_port(fake_consul):
    """
    Serve fake_consul from its own event loop in a background thread

    Needed by code that starts its own loop, such as the CLI commands.
    """
    loop = asyncio.new_event_loop()
    runner = web.AppRunner(fake_consul.app)
    loop.run_until_complete(runner.setup())
    site = web.TCPSite(runner, "127.0.0.1", 0)
    loop.run_until_complete(site.start())
    port = runner.addresses[0][1]

    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    try:
        yield port
    finally:
        asyncio.run_coroutine_threadsafe(runner.cleanup(), loop).result(timeout=5)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=5)
        loop.close()


@pytest.fixture(autouse=True)
def reset_root_logger():
    """CLI tests install stdout handlers on the root logger; drop them afterwards"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)

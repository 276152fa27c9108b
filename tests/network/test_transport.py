"""Tests for onionnet.network.transport - HttpTransport against live local servers."""

from __future__ import annotations

import asyncio
import socket

import pytest
import pytest_asyncio
from aiohttp import web

from onionnet.core.exceptions import DeliveryError, ValidationError
from onionnet.network.registry import RegistryNode
from onionnet.network.transport import HttpTransport


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest_asyncio.fixture
async def echo_server():
    """A small app exercising each response kind; yields its base URL."""

    async def echo(request: web.Request) -> web.Response:
        return web.json_response({"echo": await request.json()})

    async def text(request: web.Request) -> web.Response:
        return web.Response(text="live")

    async def fail(request: web.Request) -> web.Response:
        return web.json_response({"success": False}, status=502)

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.json_response({})

    async def not_a_directory(request: web.Request) -> web.Response:
        return web.json_response({"routers": []})

    app = web.Application()
    app.router.add_post("/echo", echo)
    app.router.add_get("/status", text)
    app.router.add_post("/fail", fail)
    app.router.add_get("/slow", slow)
    app.router.add_get("/getRegistry", not_a_directory)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_post_json(self, echo_server):
        async with HttpTransport() as transport:
            result = await transport.post_json(f"{echo_server}/echo", {"data": "aGk="})
        assert result == {"echo": {"data": "aGk="}}

    @pytest.mark.asyncio
    async def test_get_text(self, echo_server):
        async with HttpTransport() as transport:
            assert await transport.get_json(f"{echo_server}/status") == "live"

    @pytest.mark.asyncio
    async def test_error_status(self, echo_server):
        async with HttpTransport() as transport:
            with pytest.raises(DeliveryError) as exc_info:
                await transport.post_json(f"{echo_server}/fail", {})
        assert exc_info.value.status == 502
        assert exc_info.value.address == f"{echo_server}/fail"

    @pytest.mark.asyncio
    async def test_not_found(self, echo_server):
        async with HttpTransport() as transport:
            with pytest.raises(DeliveryError) as exc_info:
                await transport.get_json(f"{echo_server}/missing")
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_unreachable(self):
        url = f"http://127.0.0.1:{_free_port()}/receive"
        async with HttpTransport() as transport:
            with pytest.raises(DeliveryError) as exc_info:
                await transport.post_json(url, {})
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_timeout(self, echo_server):
        async with HttpTransport(timeout=0.1) as transport:
            with pytest.raises(DeliveryError, match="timed out"):
                await transport.get_json(f"{echo_server}/slow")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, echo_server):
        transport = HttpTransport()
        await transport.get_json(f"{echo_server}/status")
        await transport.close()
        await transport.close()

    @pytest.mark.asyncio
    async def test_reopens_after_close(self, echo_server):
        transport = HttpTransport()
        await transport.close()
        try:
            assert await transport.get_json(f"{echo_server}/status") == "live"
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_fetch_directory_rejects_other_shapes(self, echo_server):
        async with HttpTransport() as transport:
            with pytest.raises(ValidationError):
                await transport.fetch_directory(echo_server)


class TestRegistryCalls:
    @pytest.mark.asyncio
    async def test_register_and_fetch(self, relay_key_pairs):
        registry = RegistryNode(host="127.0.0.1", port=0)
        await registry.start()
        registry_url = f"http://127.0.0.1:{registry.bound_port}"

        try:
            async with HttpTransport() as transport:
                for node_id, key_pair in zip((5, 6), relay_key_pairs):
                    await transport.register_node(registry_url, node_id, key_pair.export_public_key())

                nodes = await transport.fetch_directory(registry_url)
        finally:
            await registry.stop()

        assert [node.id for node in nodes] == [5, 6]
        assert nodes[0].public_key_text == relay_key_pairs[0].export_public_key()

    @pytest.mark.asyncio
    async def test_register_rejected(self):
        registry = RegistryNode(host="127.0.0.1", port=0)
        await registry.start()
        registry_url = f"http://127.0.0.1:{registry.bound_port}"

        try:
            async with HttpTransport() as transport:
                with pytest.raises(DeliveryError) as exc_info:
                    await transport.register_node(registry_url, 1, "not-a-key")
        finally:
            await registry.stop()

        assert exc_info.value.status == 400

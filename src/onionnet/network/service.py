"""
Shared aiohttp service plumbing for the registry, onion routers and users.

Provides the start/stop/run_forever lifecycle, a middleware that runs every
request inside the node's logging context, and helpers that turn the exception
taxonomy into JSON error responses.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import web

from onionnet.core.exceptions import ValidationError, error_body, http_status_for
from onionnet.core.logging import request_context

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# =============================================================================
# REQUEST / RESPONSE HELPERS
# =============================================================================


async def read_json(request: web.Request) -> Any:
    """Decode a JSON request body.

    Raises:
        ValidationError: If the body is not valid JSON.
    """
    try:
        return await request.json()
    except ValueError as e:
        raise ValidationError("request body is not valid JSON") from e


def json_error(exc: BaseException) -> web.Response:
    """Error response for ``exc`` using the taxonomy's status mapping."""
    return web.json_response(error_body(exc), status=http_status_for(exc))


def json_success(**extra: Any) -> web.Response:
    return web.json_response({"success": True, **extra})


def json_result(value: Any) -> web.Response:
    """Debug accessor response ``{"result": value}``."""
    return web.json_response({"result": value})


def request_middleware(node: str) -> Any:
    """Middleware running each request in ``node``'s logging context.

    The correlation id comes from the ``X-Correlation-ID`` header when the
    caller sends one. Unhandled crashes become JSON 500 responses.
    """

    @web.middleware
    async def middleware(request: web.Request, handler: Any) -> web.StreamResponse:
        with request_context(node, request.headers.get(CORRELATION_HEADER)):
            try:
                return await handler(request)
            except web.HTTPException:
                raise
            except Exception as e:
                logger.exception(f"Unhandled error in {request.method} {request.path}")
                return json_error(e)

    return middleware


# =============================================================================
# LIFECYCLE
# =============================================================================


class HttpService:
    """Base class for an aiohttp service with an explicit lifecycle.

    Subclasses implement :meth:`_create_app` and may hook
    :meth:`_on_start` / :meth:`_on_stop`.
    """

    # Display name, and the node label attached to every request log line
    name = "service"
    label = "service"

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def bound_port(self) -> int | None:
        """Port actually listened on (differs from ``port`` when it is 0)."""
        if self._runner is None:
            return None
        for address in self._runner.addresses:
            if isinstance(address, tuple):
                return address[1]
        return None

    def _create_app(self) -> web.Application:
        raise NotImplementedError

    def _new_app(self) -> web.Application:
        return web.Application(middlewares=[request_middleware(self.label)])

    async def _on_start(self) -> None:
        pass

    async def _on_stop(self) -> None:
        pass

    async def start(self) -> None:
        """Start serving."""
        if self._running:
            logger.warning(f"{self.name} already running")
            return

        self._app = self._create_app()
        self._runner = web.AppRunner(self._app, access_log=None)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info(f"{self.name} listening on {self.host}:{self.bound_port}")

        await self._on_start()

    async def stop(self) -> None:
        """Stop serving and release outbound resources."""
        if not self._running:
            return

        await self._on_stop()

        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()

        self._running = False
        self._app = None
        self._runner = None
        self._site = None

        logger.info(f"{self.name} stopped")

    async def run_forever(self) -> None:
        """Start and run until cancelled."""
        await self.start()

        try:
            while self._running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def handle_status(self, request: web.Request) -> web.Response:
        """GET /status"""
        return web.Response(text="live")

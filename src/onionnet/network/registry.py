"""
Registry node - the HTTP face of the node directory.

Endpoints:
    GET  /status        liveness ("live")
    POST /registerNode  {"id": int, "publicKey": str}
    GET  /getRegistry   {"nodes": [{"id", "publicKey"}, ...]}
"""

from __future__ import annotations

import logging

from aiohttp import web

from onionnet.core.config import OnionSettings, get_settings
from onionnet.core.exceptions import OnionError
from onionnet.network.directory import NodeDirectory
from onionnet.network.messages import RegisterNodeBody
from onionnet.network.service import HttpService, json_error, json_success, read_json

logger = logging.getLogger(__name__)


class RegistryNode(HttpService):
    """Serves relay registration and directory fetches."""

    name = "Registry"
    label = "registry"

    def __init__(
        self,
        host: str = "0.0.0.0",  # nosec B104
        port: int = 8080,
        directory: NodeDirectory | None = None,
    ) -> None:
        super().__init__(host, port)
        self.directory = directory if directory is not None else NodeDirectory()

    def _create_app(self) -> web.Application:
        app = self._new_app()
        app.router.add_get("/status", self.handle_status)
        app.router.add_post("/registerNode", self.handle_register_node)
        app.router.add_get("/getRegistry", self.handle_get_registry)
        return app

    async def handle_register_node(self, request: web.Request) -> web.Response:
        """POST /registerNode

        Re-registering a known id succeeds without replacing its key.
        """
        try:
            body = RegisterNodeBody.from_wire(await read_json(request))
            added = self.directory.register(body.id, body.public_key)
        except OnionError as e:
            logger.warning(f"Rejected registration: {e.message}")
            return json_error(e)
        return json_success(added=added)

    async def handle_get_registry(self, request: web.Request) -> web.Response:
        """GET /getRegistry"""
        return web.json_response(self.directory.to_wire())


def create_registry_node(settings: OnionSettings | None = None, **kwargs) -> RegistryNode:
    """Create a registry bound per ``settings``; kwargs override."""
    settings = settings or get_settings()
    kwargs.setdefault("host", settings.bind_host)
    kwargs.setdefault("port", settings.registry_port)
    return RegistryNode(**kwargs)

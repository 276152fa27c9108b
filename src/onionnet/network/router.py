"""
Onion router - a relay that peels one layer per envelope and forwards it.

Endpoints:
    GET  /status                            liveness ("live")
    POST /receive                           hop delivery {"wrappedKey", "body"}
    GET  /getLastReceivedEncryptedMessage   {"result": <base64 body> | null}
    GET  /getLastReceivedDecryptedMessage   {"result": <layer> | null}
    GET  /getLastMessageDestination         {"result": <address> | null}

The router registers its public key with the registry when it starts. If
the registry is unreachable the failure is logged and the router keeps
serving; senders simply will not select it.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from onionnet.core.config import OnionSettings, get_settings
from onionnet.core.exceptions import OnionError
from onionnet.crypto.hybrid import RelayKeyPair
from onionnet.network.relay import RelayHopProcessor
from onionnet.network.service import HttpService, json_error, json_result, json_success, read_json
from onionnet.network.transport import HttpTransport

logger = logging.getLogger(__name__)


class OnionRouter(HttpService):
    """Relay ``node_id``, listening on ``base_onion_router_port + node_id``.

    Attributes:
        node_id: Relay id announced to the registry.
        key_pair: RSA key pair; generated at construction if not given.
        processor: Hop processor holding the diagnostics of the last message.
    """

    def __init__(
        self,
        node_id: int,
        settings: OnionSettings | None = None,
        key_pair: RelayKeyPair | None = None,
        transport: HttpTransport | None = None,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        super().__init__(
            host if host is not None else self.settings.bind_host,
            port if port is not None else self.settings.router_port(node_id),
        )
        self.node_id = node_id
        self.name = f"Onion router {node_id}"
        self.label = f"router-{node_id}"
        self.key_pair = key_pair or RelayKeyPair.generate()
        self.transport = transport or HttpTransport(timeout=self.settings.request_timeout)
        self.processor = RelayHopProcessor(
            key_pair=self.key_pair,
            forward=self.transport.post_json,
            node_id=node_id,
        )
        self.registered = False

    def _create_app(self) -> web.Application:
        app = self._new_app()
        app.router.add_get("/status", self.handle_status)
        app.router.add_post("/receive", self.handle_receive)
        app.router.add_get("/getLastReceivedEncryptedMessage", self.handle_last_encrypted)
        app.router.add_get("/getLastReceivedDecryptedMessage", self.handle_last_decrypted)
        app.router.add_get("/getLastMessageDestination", self.handle_last_destination)
        return app

    async def _on_start(self) -> None:
        await self.register()

    async def _on_stop(self) -> None:
        await self.transport.close()

    async def register(self) -> bool:
        """Announce this relay's public key to the registry.

        Returns:
            True on success; False if the registry refused or was unreachable.
        """
        try:
            await self.transport.register_node(
                self.settings.registry_url,
                self.node_id,
                self.key_pair.export_public_key(),
            )
        except OnionError as e:
            logger.error(f"Onion router {self.node_id} failed to register: {e.message}")
            self.registered = False
            return False

        self.registered = True
        logger.info(f"Onion router {self.node_id} registered with {self.settings.registry_url}")
        return True

    # -------------------------------------------------------------------------
    # HANDLERS
    # -------------------------------------------------------------------------

    async def handle_receive(self, request: web.Request) -> web.Response:
        """POST /receive

        Peels this relay's layer and forwards the inner structure once.
        """
        try:
            await self.processor.process(await read_json(request))
        except OnionError as e:
            return json_error(e)
        return json_success()

    async def handle_last_encrypted(self, request: web.Request) -> web.Response:
        return json_result(self.processor.last_received_body)

    async def handle_last_decrypted(self, request: web.Request) -> web.Response:
        return json_result(self.processor.last_decrypted_layer)

    async def handle_last_destination(self, request: web.Request) -> web.Response:
        return json_result(self.processor.last_destination)

    def get_stats(self) -> dict[str, Any]:
        return {"id": self.node_id, "registered": self.registered, **self.processor.get_stats()}

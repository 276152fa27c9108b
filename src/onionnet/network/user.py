"""
User node - sends messages through the onion network and receives them.

Endpoints:
    GET  /status                  liveness ("live")
    POST /sendMessage             {"message": str, "destinationUserId": int}
    POST /receiveMessage          terminal delivery {"data": <base64>}
    GET  /getLastReceivedMessage  {"result": str | null}
    GET  /getLastSentMessage      {"result": str | null}
    GET  /getLastCircuit          {"result": [relay ids] | null}
"""

from __future__ import annotations

import logging
import random
from typing import Any

from aiohttp import web

from onionnet.core.config import OnionSettings, get_settings
from onionnet.core.exceptions import OnionError
from onionnet.network.messages import SendMessageBody
from onionnet.network.onion import BuiltOnion, build_onion, unwrap_message
from onionnet.network.service import HttpService, json_error, json_result, json_success, read_json
from onionnet.network.transport import HttpTransport

logger = logging.getLogger(__name__)


class UserNode(HttpService):
    """User ``user_id``, listening on ``base_user_port + user_id``."""

    def __init__(
        self,
        user_id: int,
        settings: OnionSettings | None = None,
        transport: HttpTransport | None = None,
        host: str | None = None,
        port: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        super().__init__(
            host if host is not None else self.settings.bind_host,
            port if port is not None else self.settings.user_port(user_id),
        )
        self.user_id = user_id
        self.name = f"User {user_id}"
        self.label = f"user-{user_id}"
        self.transport = transport or HttpTransport(timeout=self.settings.request_timeout)
        self.rng = rng

        self.last_received_message: str | None = None
        self.last_sent_message: str | None = None
        self.last_circuit: list[int] | None = None

    def _create_app(self) -> web.Application:
        app = self._new_app()
        app.router.add_get("/status", self.handle_status)
        app.router.add_post("/sendMessage", self.handle_send_message)
        app.router.add_post("/receiveMessage", self.handle_receive_message)
        app.router.add_get("/getLastReceivedMessage", self.handle_last_received)
        app.router.add_get("/getLastSentMessage", self.handle_last_sent)
        app.router.add_get("/getLastCircuit", self.handle_last_circuit)
        return app

    async def _on_stop(self) -> None:
        await self.transport.close()

    async def send_message(self, message: str, destination_user_id: int) -> BuiltOnion:
        """Wrap ``message`` for user ``destination_user_id`` and hand it to the entry relay.

        Raises:
            DeliveryError: If the registry or the entry relay cannot be reached.
            InsufficientRelaysError: If too few relays are registered.
        """
        snapshot = await self.transport.fetch_directory(self.settings.registry_url)
        onion = build_onion(
            message,
            self.settings.user_deliver_url(destination_user_id),
            snapshot,
            self.settings.path_length,
            relay_address=lambda relay: self.settings.router_receive_url(relay.id),
            rng=self.rng,
        )

        self.last_sent_message = message
        self.last_circuit = onion.path_ids
        logger.info(f"User {self.user_id} sending to user {destination_user_id} via {len(onion.path)} relays")

        await self.transport.post_json(onion.entry_address, onion.envelope.to_wire())
        return onion

    def receive_message(self, wire_body: Any) -> str:
        """Unwrap a terminal delivery and remember the text."""
        message = unwrap_message(wire_body)
        self.last_received_message = message
        logger.info(f"User {self.user_id} received a message ({len(message)} chars)")
        return message

    # -------------------------------------------------------------------------
    # HANDLERS
    # -------------------------------------------------------------------------

    async def handle_send_message(self, request: web.Request) -> web.Response:
        """POST /sendMessage"""
        try:
            body = SendMessageBody.from_wire(await read_json(request))
            await self.send_message(body.message, body.destination_user_id)
        except OnionError as e:
            logger.warning(f"User {self.user_id} failed to send: {e.message}")
            return json_error(e)
        return json_success()

    async def handle_receive_message(self, request: web.Request) -> web.Response:
        """POST /receiveMessage"""
        try:
            self.receive_message(await read_json(request))
        except OnionError as e:
            return json_error(e)
        return json_success()

    async def handle_last_received(self, request: web.Request) -> web.Response:
        return json_result(self.last_received_message)

    async def handle_last_sent(self, request: web.Request) -> web.Response:
        return json_result(self.last_sent_message)

    async def handle_last_circuit(self, request: web.Request) -> web.Response:
        return json_result(self.last_circuit)

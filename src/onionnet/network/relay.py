"""
Relay hop processor - the per-envelope state machine run by each relay.

    unseal -> decrypt -> forward

Each envelope is handled independently; the only long-lived state is the
relay's key pair (read-only) and a few diagnostic fields. Forwarding is a
single attempt and is never retried.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from onionnet.core.exceptions import DeliveryError, OnionError
from onionnet.crypto.hybrid import RelayKeyPair
from onionnet.network.messages import Envelope, PeeledLayer
from onionnet.network.onion import peel_layer

logger = logging.getLogger(__name__)

Forward = Callable[[str, dict[str, Any]], Awaitable[Any]]


@dataclass
class RelayHopProcessor:
    """Peels one layer off each received envelope and forwards the rest.

    Attributes:
        key_pair: This relay's RSA key pair.
        forward: Async callable ``(address, body)`` that delivers ``body``.
        node_id: Relay id, used only for logging.
    """

    key_pair: RelayKeyPair
    forward: Forward
    node_id: int | None = None

    # Diagnostics (last message only, never persisted)
    last_received_body: str | None = field(default=None, repr=False)
    last_decrypted_layer: dict[str, Any] | None = field(default=None, repr=False)
    last_destination: str | None = field(default=None, repr=False)

    # Metrics
    messages_received: int = 0
    messages_forwarded: int = 0
    messages_failed: int = 0

    def peel(self, wire_body: Any) -> PeeledLayer:
        """Parse a hop delivery body and remove this relay's layer.

        Raises:
            ValidationError: If the body is not an envelope.
            ProtocolError: If the envelope has no wrapped key.
            CryptoError: If unsealing or decryption fails.
        """
        envelope = Envelope.from_wire(wire_body)
        self.last_received_body = wire_body.get("body")
        layer = peel_layer(envelope, self.key_pair.private_key)
        self.last_decrypted_layer = {"destination": layer.destination, **layer.wire_body()}
        self.last_destination = layer.destination
        return layer

    async def process(self, wire_body: Any) -> PeeledLayer:
        """Peel, then deliver the inner structure to its destination once.

        Raises:
            ValidationError, ProtocolError, CryptoError: From :meth:`peel`.
            DeliveryError: If the next hop is unreachable or rejects the body.
        """
        self.messages_received += 1
        try:
            layer = self.peel(wire_body)
            kind = "recipient" if layer.is_terminal else "relay"
            logger.info(
                f"Relay {self.node_id} forwarding layer",
                extra={"hop": {"next": kind, "destination": layer.destination}},
            )
            try:
                await self.forward(layer.destination, layer.wire_body())
            except OnionError:
                raise
            except Exception as e:
                raise DeliveryError(f"forwarding failed: {e}", address=layer.destination) from e
        except OnionError as e:
            self.messages_failed += 1
            logger.warning(f"Relay {self.node_id} dropped message: {e.__class__.__name__}: {e.message}")
            raise

        self.messages_forwarded += 1
        return layer

    def get_stats(self) -> dict[str, Any]:
        return {
            "messages_received": self.messages_received,
            "messages_forwarded": self.messages_forwarded,
            "messages_failed": self.messages_failed,
        }

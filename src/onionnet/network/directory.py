"""
Node directory - the registry of relay identities senders build paths from.

The directory is the only shared mutable state in the system. Registration
and snapshotting are serialized by one lock, and readers only ever receive
a copy, so a path being selected can never observe a half-applied
registration.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from onionnet.network.messages import RelayIdentity

logger = logging.getLogger(__name__)


class NodeDirectory:
    """Insertion-ordered set of :class:`RelayIdentity`, unique by id.

    Registering an id that is already present is a silent no-op: the first
    registered key wins. There is no deletion and no capacity limit, since
    relays re-register every time they start.
    """

    def __init__(self) -> None:
        self._nodes: dict[int, RelayIdentity] = {}
        self._lock = threading.Lock()

    def register(self, node_id: Any, public_key_text: Any) -> bool:
        """Register a relay.

        Returns:
            True if the relay was added, False if the id was already known.

        Raises:
            ValidationError: If ``node_id`` is not an integer or
                ``public_key_text`` is not a well-formed exported key.
        """
        # Parse outside the lock; key import is the slow part
        identity = RelayIdentity.create(node_id, public_key_text)
        with self._lock:
            if identity.id in self._nodes:
                logger.debug(f"Relay {identity.id} already registered, ignoring")
                return False
            self._nodes[identity.id] = identity
        logger.info(f"Registered relay {identity.id}")
        return True

    def snapshot(self) -> list[RelayIdentity]:
        """Current membership in registration order (a copy)."""
        with self._lock:
            return list(self._nodes.values())

    def get(self, node_id: int) -> RelayIdentity | None:
        with self._lock:
            return self._nodes.get(node_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    def to_wire(self) -> dict[str, Any]:
        """Directory fetch response ``{"nodes": [{id, publicKey}, ...]}``."""
        return {"nodes": [node.to_wire() for node in self.snapshot()]}

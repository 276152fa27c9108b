"""
In-process network launcher: one registry, N onion routers, M users.

Mirrors the original demo deployment, where every node ran in one process
on well-known ports derived from the settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from onionnet.core.config import OnionSettings, get_settings
from onionnet.network.registry import RegistryNode, create_registry_node
from onionnet.network.router import OnionRouter
from onionnet.network.service import HttpService
from onionnet.network.user import UserNode

logger = logging.getLogger(__name__)


@dataclass
class Network:
    """Handle on a launched network."""

    registry: RegistryNode
    routers: list[OnionRouter] = field(default_factory=list)
    users: list[UserNode] = field(default_factory=list)

    def services(self) -> list[HttpService]:
        return [self.registry, *self.routers, *self.users]

    def router(self, node_id: int) -> OnionRouter:
        for router in self.routers:
            if router.node_id == node_id:
                return router
        raise KeyError(node_id)

    def user(self, user_id: int) -> UserNode:
        for user in self.users:
            if user.user_id == user_id:
                return user
        raise KeyError(user_id)

    async def stop(self) -> None:
        """Stop users, then routers, then the registry."""
        for service in reversed(self.services()):
            await service.stop()
        logger.info("Network stopped")


async def launch_network(
    n_routers: int,
    n_users: int,
    settings: OnionSettings | None = None,
) -> Network:
    """Start a registry, ``n_routers`` routers (ids 0..n-1) and ``n_users`` users.

    Routers register as they start, so the directory is complete once this
    returns. If any service fails to start, the ones already running are
    stopped before the error propagates.
    """
    settings = settings or get_settings()
    network = Network(registry=create_registry_node(settings))
    started: list[HttpService] = []

    try:
        await network.registry.start()
        started.append(network.registry)

        for node_id in range(n_routers):
            router = OnionRouter(node_id, settings=settings)
            await router.start()
            started.append(router)
            network.routers.append(router)

        for user_id in range(n_users):
            user = UserNode(user_id, settings=settings)
            await user.start()
            started.append(user)
            network.users.append(user)
    except Exception:
        for service in reversed(started):
            await service.stop()
        raise

    logger.info(f"Network up: registry, {n_routers} routers, {n_users} users")
    return network

"""
HTTP transport for onionnet - aiohttp client calls between services.

Every outbound call is a single attempt. Connection failures, timeouts and
non-2xx responses become :class:`~onionnet.core.exceptions.DeliveryError`.
No timeout is applied unless one is configured.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any

import aiohttp

from onionnet.core.exceptions import DeliveryError, ValidationError
from onionnet.network.messages import RegisterNodeBody, RelayIdentity

logger = logging.getLogger(__name__)


class HttpTransport:
    """Owns one :class:`aiohttp.ClientSession` for a service's outbound calls.

    Usable as an async context manager, or via :meth:`close` when the owning
    service stops.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(self, method: str, url: str, body: dict[str, Any] | None = None) -> Any:
        session = self._get_session()
        try:
            async with session.request(method, url, json=body) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise DeliveryError(
                        f"{url} returned {response.status}: {text[:200]}",
                        address=url,
                        status=response.status,
                    )
                if response.content_type == "application/json":
                    return await response.json()
                return await response.text()
        except DeliveryError:
            raise
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"timed out calling {url}", address=url) from e
        except aiohttp.ClientError as e:
            raise DeliveryError(f"cannot reach {url}: {e}", address=url) from e

    async def post_json(self, url: str, body: dict[str, Any]) -> Any:
        """POST ``body`` as JSON and return the decoded response."""
        return await self._request("POST", url, body)

    async def get_json(self, url: str) -> Any:
        return await self._request("GET", url)

    # -------------------------------------------------------------------------
    # REGISTRY CALLS
    # -------------------------------------------------------------------------

    async def register_node(self, registry_url: str, node_id: int, public_key_text: str) -> Any:
        """Register a relay with the registry at ``registry_url``."""
        body = RegisterNodeBody(id=node_id, public_key=public_key_text).to_wire()
        return await self.post_json(f"{registry_url}/registerNode", body)

    async def fetch_directory(self, registry_url: str) -> list[RelayIdentity]:
        """Fetch and validate the registry's current membership.

        Raises:
            DeliveryError: If the registry cannot be reached.
            ValidationError: If the response is not a directory listing.
        """
        data = await self.get_json(f"{registry_url}/getRegistry")
        if not isinstance(data, dict) or not isinstance(data.get("nodes"), list):
            raise ValidationError("registry response has no 'nodes' list", field="nodes")
        return [RelayIdentity.from_wire(node) for node in data["nodes"]]

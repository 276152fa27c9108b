"""Global test fixtures for the onionnet test suite."""

from __future__ import annotations

import json
import os
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from onionnet.core.config import clear_settings_cache
from onionnet.crypto.hybrid import RelayKeyPair
from onionnet.network.messages import RelayIdentity

# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove ONIONNET_ environment variables and reset the settings singleton."""
    for key in list(os.environ.keys()):
        if key.startswith("ONIONNET_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Keys
# ============================================================================

# RSA-2048 generation takes tens of milliseconds; share keys across the session.


@pytest.fixture(scope="session")
def relay_key_pairs() -> list[RelayKeyPair]:
    """Three relay key pairs, for relays with ids 1, 2 and 3."""
    return [RelayKeyPair.generate() for _ in range(3)]


@pytest.fixture(scope="session")
def relay_key_pair(relay_key_pairs) -> RelayKeyPair:
    return relay_key_pairs[0]


@pytest.fixture(scope="session")
def relay_identities(relay_key_pairs) -> list[RelayIdentity]:
    """Directory entries for the shared key pairs, ids 1..3."""
    return [
        RelayIdentity.create(index + 1, key_pair.export_public_key())
        for index, key_pair in enumerate(relay_key_pairs)
    ]


# ============================================================================
# Helpers
# ============================================================================


class OrderedSample:
    """Stand-in RNG whose ``sample`` keeps directory order."""

    def sample(self, population, k):
        return list(population)[:k]


@pytest.fixture
def ordered_rng() -> OrderedSample:
    return OrderedSample()


def relay_address(relay: RelayIdentity) -> str:
    return f"relay://{relay.id}"


@pytest.fixture
def fake_relay_address():
    """Maps a relay to ``relay://<id>``."""
    return relay_address


@pytest.fixture
def make_request():
    """Build a mock aiohttp request whose ``json()`` returns ``body``.

    Pass ``raw_error`` to make ``json()`` raise instead.
    """

    def _make(body: Any = None, raw_error: Exception | None = None) -> MagicMock:
        request = MagicMock()
        if raw_error is not None:
            request.json = AsyncMock(side_effect=raw_error)
        else:
            request.json = AsyncMock(return_value=body)
        return request

    return _make


@pytest.fixture
def response_json():
    """Decode the JSON body of an aiohttp ``web.Response``."""

    def _decode(response) -> Any:
        return json.loads(response.body)

    return _decode

"""Tests for onionnet.network.relay - RelayHopProcessor."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from onionnet.core.exceptions import CryptoError, DeliveryError, ProtocolError, ValidationError
from onionnet.network.onion import build_onion
from onionnet.network.relay import RelayHopProcessor

RECIPIENT = "deliver://user42"


@pytest.fixture
def onion(relay_identities, ordered_rng, fake_relay_address):
    return build_onion("hello", RECIPIENT, relay_identities, 3, relay_address=fake_relay_address, rng=ordered_rng)


def _processor(key_pair, forward=None, node_id=1) -> RelayHopProcessor:
    return RelayHopProcessor(key_pair=key_pair, forward=forward or AsyncMock(), node_id=node_id)


class TestPeel:
    def test_peel_records_diagnostics(self, relay_key_pairs, onion):
        processor = _processor(relay_key_pairs[0])
        wire = onion.envelope.to_wire()

        layer = processor.peel(wire)

        assert layer.destination == "relay://2"
        assert processor.last_received_body == wire["body"]
        assert processor.last_destination == "relay://2"
        assert processor.last_decrypted_layer["destination"] == "relay://2"
        assert "wrappedKey" in processor.last_decrypted_layer

    def test_peel_rejects_malformed(self, relay_key_pair):
        with pytest.raises(ValidationError):
            _processor(relay_key_pair).peel({"nothing": "here"})


class TestProcess:
    @pytest.mark.asyncio
    async def test_forwards_inner_envelope(self, relay_key_pairs, onion):
        forward = AsyncMock()
        processor = _processor(relay_key_pairs[0], forward)

        layer = await processor.process(onion.envelope.to_wire())

        forward.assert_awaited_once()
        address, body = forward.await_args.args
        assert address == "relay://2"
        assert set(body) == {"wrappedKey", "body"}
        assert body == layer.wire_body()
        assert processor.messages_received == 1
        assert processor.messages_forwarded == 1
        assert processor.messages_failed == 0

    @pytest.mark.asyncio
    async def test_logs_hop_fields(self, relay_key_pairs, onion, caplog):
        caplog.set_level("INFO", logger="onionnet.network.relay")

        await _processor(relay_key_pairs[0]).process(onion.envelope.to_wire())

        [record] = [r for r in caplog.records if hasattr(r, "hop")]
        assert record.hop == {"next": "relay", "destination": "relay://2"}

    @pytest.mark.asyncio
    async def test_full_chain(self, relay_key_pairs, onion):
        """Three processors chained in memory deliver the terminal payload."""
        delivered: list = []

        async def deliver(address, body):
            delivered.append((address, body))

        third = _processor(relay_key_pairs[2], deliver, node_id=3)

        async def to_third(address, body):
            assert address == "relay://3"
            await third.process(body)

        second = _processor(relay_key_pairs[1], to_third, node_id=2)

        async def to_second(address, body):
            assert address == "relay://2"
            await second.process(body)

        first = _processor(relay_key_pairs[0], to_second, node_id=1)

        await first.process(onion.envelope.to_wire())

        assert delivered == [(RECIPIENT, {"data": "aGVsbG8="})]
        assert third.last_destination == RECIPIENT

    @pytest.mark.asyncio
    async def test_forward_failure_wrapped(self, relay_key_pairs, onion):
        forward = AsyncMock(side_effect=ConnectionRefusedError("refused"))
        processor = _processor(relay_key_pairs[0], forward)

        with pytest.raises(DeliveryError) as exc_info:
            await processor.process(onion.envelope.to_wire())

        assert exc_info.value.address == "relay://2"
        forward.assert_awaited_once()
        assert processor.messages_failed == 1
        assert processor.messages_forwarded == 0

    @pytest.mark.asyncio
    async def test_delivery_error_passes_through(self, relay_key_pairs, onion):
        original = DeliveryError("next hop said no", address="relay://2", status=400)
        processor = _processor(relay_key_pairs[0], AsyncMock(side_effect=original))

        with pytest.raises(DeliveryError) as exc_info:
            await processor.process(onion.envelope.to_wire())

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_wrong_relay_does_not_forward(self, relay_key_pairs, onion):
        forward = AsyncMock()
        processor = _processor(relay_key_pairs[1], forward)

        with pytest.raises(CryptoError):
            await processor.process(onion.envelope.to_wire())

        forward.assert_not_awaited()
        assert processor.messages_failed == 1

    @pytest.mark.asyncio
    async def test_missing_wrapped_key(self, relay_key_pair):
        forward = AsyncMock()
        processor = _processor(relay_key_pair, forward)

        with pytest.raises(ProtocolError):
            await processor.process({"body": "aGVsbG8="})

        forward.assert_not_awaited()

    def test_get_stats(self, relay_key_pair):
        assert _processor(relay_key_pair).get_stats() == {
            "messages_received": 0,
            "messages_forwarded": 0,
            "messages_failed": 0,
        }

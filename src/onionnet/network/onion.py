"""
Onion construction and peeling.

Build (sender), for a path ``r1 .. rk`` and recipient address ``R``:

    layer_k = seal(r_k, key_k), AES(key_k, {destination: R,        data})
    layer_i = seal(r_i, key_i), AES(key_i, {destination: addr(r_i+1), wrappedKey, body of layer_i+1})

Layers are built inside-out (from ``r_k`` back to ``r1``) and peeled
outside-in. Each relay learns only the address it must forward to, so only
the sender knows the whole path and only ``r_k`` sees the recipient.

Note that the innermost data is base64, not encrypted for the recipient:
confidentiality is hop-to-hop, and ``r_k`` can read the message.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from cryptography.hazmat.primitives.asymmetric import rsa

from onionnet.core.config import get_settings
from onionnet.core.exceptions import InsufficientRelaysError, ProtocolError, ValidationError
from onionnet.crypto.encoding import b64decode
from onionnet.crypto.hybrid import (
    SymmetricKey,
    seal_symmetric_key,
    symmetric_decrypt,
    symmetric_encrypt,
    unseal_symmetric_key,
)
from onionnet.network.messages import (
    Envelope,
    InnerLayer,
    PeeledLayer,
    RelayIdentity,
    TerminalPayload,
    decode_layer,
    encode_layer,
)

logger = logging.getLogger(__name__)

# Cryptographically secure RNG for path selection
_secure_random = random.SystemRandom()

RelayAddress = Callable[[RelayIdentity], str]


def default_relay_address(relay: RelayIdentity) -> str:
    """Receive endpoint of ``relay`` under the current settings."""
    return get_settings().router_receive_url(relay.id)


@dataclass(frozen=True)
class BuiltOnion:
    """A ready-to-send onion.

    Unpacks as ``entry_address, envelope = build_onion(...)``.
    """

    entry_address: str
    envelope: Envelope
    path: tuple[RelayIdentity, ...] = field(default=())

    def __iter__(self) -> Iterator[Any]:
        return iter((self.entry_address, self.envelope))

    @property
    def path_ids(self) -> list[int]:
        return [relay.id for relay in self.path]


def select_path(
    directory_snapshot: Sequence[RelayIdentity],
    path_length: int,
    rng: random.Random | None = None,
) -> list[RelayIdentity]:
    """Pick ``path_length`` distinct relays uniformly at random.

    Raises:
        ValidationError: If ``path_length`` is less than 1.
        InsufficientRelaysError: If the snapshot is smaller than the path.
    """
    if path_length < 1:
        raise ValidationError("path length must be at least 1", field="path_length", value=path_length)
    candidates = list(directory_snapshot)
    if len(candidates) < path_length:
        raise InsufficientRelaysError(available=len(candidates), required=path_length)
    return (rng or _secure_random).sample(candidates, path_length)


def build_onion(
    message: str | bytes,
    recipient_address: str,
    directory_snapshot: Sequence[RelayIdentity],
    path_length: int,
    *,
    relay_address: RelayAddress | None = None,
    rng: random.Random | None = None,
) -> BuiltOnion:
    """Select a path and wrap ``message`` in one layer per relay.

    Args:
        message: Plaintext; ``str`` is encoded as UTF-8.
        recipient_address: Deliver endpoint of the final recipient.
        directory_snapshot: Candidate relays.
        path_length: Number of relays (and layers).
        relay_address: Maps a relay to its receive endpoint.
        rng: Random source for path selection.

    Returns:
        The entry relay's address, its envelope, and the chosen path.

    Raises:
        InsufficientRelaysError: If there are fewer relays than ``path_length``.
        CryptoError: If a relay's key cannot seal the layer key.
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    address_of = relay_address or default_relay_address

    path = select_path(directory_snapshot, path_length, rng=rng)

    # Innermost layer first; each outer layer names the relay one hop deeper
    terminal = TerminalPayload.for_message(recipient_address, message)
    envelope = _seal_layer(path[-1], recipient_address, terminal)
    for relay, next_relay in reversed(list(zip(path, path[1:]))):
        envelope = _seal_layer(relay, address_of(next_relay), envelope)

    logger.debug(f"Built onion with {len(path)} layers, entry relay {path[0].id}")
    return BuiltOnion(entry_address=address_of(path[0]), envelope=envelope, path=tuple(path))


def _seal_layer(relay: RelayIdentity, destination: str, inner: InnerLayer) -> Envelope:
    """Encrypt ``{destination, ...inner}`` under a fresh key sealed to ``relay``."""
    layer_key = SymmetricKey.generate()
    body = symmetric_encrypt(layer_key, encode_layer(destination, inner))
    wrapped_key = seal_symmetric_key(relay.public_key, layer_key.export())
    return Envelope(next_hop_address=destination, wrapped_key=wrapped_key, body=body)


def peel_layer(envelope: Envelope, private_key: rsa.RSAPrivateKey) -> PeeledLayer:
    """Remove exactly one layer.

    Raises:
        ProtocolError: If the envelope carries no wrapped key, i.e. it was
            not built for a relay.
        CryptoError: If the key cannot be unsealed or the body fails
            authentication.
        ValidationError: If the decrypted layer is malformed.
    """
    if envelope.wrapped_key is None:
        raise ProtocolError("envelope has no wrapped key; not addressed to a relay")

    layer_key = SymmetricKey.from_bytes(unseal_symmetric_key(private_key, envelope.wrapped_key))
    plaintext = symmetric_decrypt(layer_key, envelope.body)
    return decode_layer(plaintext)


def unwrap_payload(terminal: TerminalPayload | dict[str, Any]) -> bytes:
    """Recipient step: decode the terminal base64 data to message bytes."""
    if not isinstance(terminal, TerminalPayload):
        terminal = TerminalPayload.from_wire(terminal)
    return b64decode(terminal.data, field="data")


def unwrap_message(terminal: TerminalPayload | dict[str, Any]) -> str:
    """Like :func:`unwrap_payload` but returns UTF-8 text."""
    try:
        return unwrap_payload(terminal).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError("message data is not UTF-8 text", field="data") from e


def count_layers(envelope: Envelope, private_keys: Sequence[rsa.RSAPrivateKey]) -> int:
    """Peel ``envelope`` with each key in path order, counting sealed layers.

    Stops at the first terminal layer. Raises whatever :func:`peel_layer`
    raises if the keys do not match the path.
    """
    layers = 0
    current: InnerLayer = envelope
    for private_key in private_keys:
        if not isinstance(current, Envelope):
            break
        layers += 1
        current = peel_layer(current, private_key).inner
    return layers

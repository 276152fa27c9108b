"""
Message formats for the onion relay protocol.

Envelope: what a relay receives (a sealed key and an opaque body)
TerminalPayload: what the recipient receives (base64 message data)
PeeledLayer: what a relay learns by removing its layer
RelayIdentity: a directory entry (relay id + RSA public key)

Wire shapes (JSON, byte fields base64):

    hop delivery       {"wrappedKey": "...", "body": "..."}
    terminal delivery  {"data": "..."}
    layer plaintext    {"destination": "<next address>", ...inner wire shape}

The address a relay forwards to is sealed inside its own layer, so it never
appears in the clear; on the wire it is implicit in the URL posted to.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from cryptography.hazmat.primitives.asymmetric import rsa

from onionnet.core.exceptions import ValidationError
from onionnet.crypto.encoding import b64decode, b64encode
from onionnet.crypto.hybrid import import_public_key


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be a JSON object", value=type(data).__name__)
    return data


def _require_str(data: dict[str, Any], key: str, allow_empty: bool = False) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not (value or allow_empty):
        raise ValidationError(f"missing or invalid '{key}'", field=key)
    return value


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"'{key}' must be an integer", field=key, value=value)
    return value


# =============================================================================
# DIRECTORY ENTRIES
# =============================================================================


@dataclass(frozen=True)
class RelayIdentity:
    """A registered relay: its id and the public key senders seal to."""

    id: int
    public_key: rsa.RSAPublicKey
    public_key_text: str

    @classmethod
    def create(cls, node_id: Any, public_key_text: Any) -> "RelayIdentity":
        """Validate and build an identity from untrusted input.

        Raises:
            ValidationError: If ``node_id`` is not an integer or the key text
                is not a well-formed exported public key.
        """
        node_id = _require_int({"id": node_id}, "id")
        if not isinstance(public_key_text, str):
            raise ValidationError("'publicKey' must be a string", field="publicKey")
        return cls(
            id=node_id,
            public_key=import_public_key(public_key_text),
            public_key_text=public_key_text,
        )

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, "publicKey": self.public_key_text}

    @classmethod
    def from_wire(cls, data: Any) -> "RelayIdentity":
        data = _require_mapping(data, "relay identity")
        return cls.create(data.get("id"), data.get("publicKey"))


# =============================================================================
# ENVELOPES
# =============================================================================


@dataclass(frozen=True)
class Envelope:
    """One onion layer as seen by the relay it targets.

    Attributes:
        next_hop_address: Where this relay delivers the peeled content. Known
            to the sender; a relay only learns it by peeling, so envelopes
            parsed off the wire carry ``None``.
        wrapped_key: Per-hop AES key sealed under the relay's RSA key.
            ``None`` means the envelope is not addressed to a relay.
        body: ``nonce || AES-GCM ciphertext`` of the layer plaintext.
    """

    next_hop_address: str | None
    wrapped_key: bytes | None
    body: bytes

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"body": b64encode(self.body)}
        if self.wrapped_key is not None:
            wire["wrappedKey"] = b64encode(self.wrapped_key)
        return wire

    @classmethod
    def from_wire(cls, data: Any) -> "Envelope":
        """Parse a hop delivery body.

        Raises:
            ValidationError: If the body is missing or a field is not base64.
        """
        data = _require_mapping(data, "envelope")
        body = b64decode(_require_str(data, "body"), field="body")
        wrapped_key = None
        if data.get("wrappedKey") is not None:
            wrapped_key = b64decode(_require_str(data, "wrappedKey"), field="wrappedKey")
        return cls(next_hop_address=None, wrapped_key=wrapped_key, body=body)


@dataclass(frozen=True)
class TerminalPayload:
    """The innermost structure: the recipient address and base64 message."""

    destination: str
    data: str

    @classmethod
    def for_message(cls, destination: str, message: bytes) -> "TerminalPayload":
        return cls(destination=destination, data=b64encode(message))

    def to_wire(self) -> dict[str, Any]:
        return {"data": self.data}

    def to_layer(self) -> dict[str, Any]:
        return {"destination": self.destination, "data": self.data}

    @classmethod
    def from_wire(cls, data: Any, destination: str = "") -> "TerminalPayload":
        data = _require_mapping(data, "terminal payload")
        # an empty message encodes to ""
        text = _require_str(data, "data", allow_empty=True)
        # validate now so unwrap cannot fail on a bad encoding later
        b64decode(text, field="data")
        return cls(destination=destination, data=text)


InnerLayer = Union[Envelope, TerminalPayload]


@dataclass(frozen=True)
class PeeledLayer:
    """Result of removing one layer: where to go next and what to send."""

    destination: str
    inner: InnerLayer

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.inner, TerminalPayload)

    def wire_body(self) -> dict[str, Any]:
        """The body posted to :attr:`destination`."""
        return self.inner.to_wire()


def encode_layer(destination: str, inner: InnerLayer) -> bytes:
    """Serialize layer plaintext: the next address plus the inner wire shape."""
    return json.dumps({"destination": destination, **inner.to_wire()}).encode("utf-8")


def decode_layer(plaintext: bytes) -> PeeledLayer:
    """Parse decrypted layer plaintext back into a :class:`PeeledLayer`.

    Raises:
        ValidationError: If the plaintext is not a layer object.
    """
    try:
        data = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("layer plaintext is not JSON") from e
    data = _require_mapping(data, "layer")
    destination = _require_str(data, "destination")

    if "body" in data:
        return PeeledLayer(destination=destination, inner=Envelope.from_wire(data))
    if "data" in data:
        return PeeledLayer(
            destination=destination,
            inner=TerminalPayload.from_wire(data, destination=destination),
        )
    raise ValidationError("layer has neither 'body' nor 'data'")


# =============================================================================
# SERVICE REQUEST BODIES
# =============================================================================


@dataclass(frozen=True)
class RegisterNodeBody:
    """POST /registerNode ``{"id": int, "publicKey": str}``."""

    id: int
    public_key: str

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, "publicKey": self.public_key}

    @classmethod
    def from_wire(cls, data: Any) -> "RegisterNodeBody":
        data = _require_mapping(data, "registration")
        return cls(id=_require_int(data, "id"), public_key=_require_str(data, "publicKey"))


@dataclass(frozen=True)
class SendMessageBody:
    """POST /sendMessage ``{"message": str, "destinationUserId": int}``."""

    message: str
    destination_user_id: int

    def to_wire(self) -> dict[str, Any]:
        return {"message": self.message, "destinationUserId": self.destination_user_id}

    @classmethod
    def from_wire(cls, data: Any) -> "SendMessageBody":
        data = _require_mapping(data, "send request")
        message = data.get("message")
        if not isinstance(message, str):
            raise ValidationError("'message' must be a string", field="message")
        return cls(message=message, destination_user_id=_require_int(data, "destinationUserId"))

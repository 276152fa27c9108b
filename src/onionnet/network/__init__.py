"""
Onion relay network - envelopes, directory, relays and the HTTP services.

Message flow:

    user --build_onion--> r1 --peel--> r2 --peel--> ... --> rk --peel--> user

Each relay removes exactly one layer and learns only the next address.
"""

from onionnet.network.directory import NodeDirectory
from onionnet.network.launcher import Network, launch_network
from onionnet.network.messages import (
    Envelope,
    PeeledLayer,
    RegisterNodeBody,
    RelayIdentity,
    SendMessageBody,
    TerminalPayload,
    decode_layer,
    encode_layer,
)
from onionnet.network.onion import (
    BuiltOnion,
    build_onion,
    count_layers,
    peel_layer,
    select_path,
    unwrap_message,
    unwrap_payload,
)
from onionnet.network.registry import RegistryNode, create_registry_node
from onionnet.network.relay import RelayHopProcessor
from onionnet.network.router import OnionRouter
from onionnet.network.transport import HttpTransport
from onionnet.network.user import UserNode

__all__ = [
    # Messages
    "Envelope",
    "PeeledLayer",
    "RegisterNodeBody",
    "RelayIdentity",
    "SendMessageBody",
    "TerminalPayload",
    "decode_layer",
    "encode_layer",
    # Directory
    "NodeDirectory",
    # Onion operations
    "BuiltOnion",
    "build_onion",
    "count_layers",
    "peel_layer",
    "select_path",
    "unwrap_message",
    "unwrap_payload",
    # Relay
    "RelayHopProcessor",
    # Services
    "HttpTransport",
    "Network",
    "OnionRouter",
    "RegistryNode",
    "UserNode",
    "create_registry_node",
    "launch_network",
]

"""Cryptographic primitives for onionnet.

Thin wrappers around :pypi:`cryptography`: RSA-OAEP for sealing per-hop
keys and AES-256-GCM for layer bodies. Base64 text encoding lives in
:mod:`onionnet.crypto.encoding`, next to but apart from the cipher calls.
"""

from onionnet.crypto.encoding import b64decode, b64encode
from onionnet.crypto.hybrid import (
    NONCE_SIZE,
    RSA_KEY_SIZE,
    SYMMETRIC_KEY_SIZE,
    RelayKeyPair,
    SymmetricKey,
    export_public_key,
    generate_asymmetric_key_pair,
    generate_symmetric_key,
    import_private_key,
    import_public_key,
    seal_symmetric_key,
    symmetric_decrypt,
    symmetric_encrypt,
    unseal_symmetric_key,
)

__all__ = [
    "b64encode",
    "b64decode",
    "NONCE_SIZE",
    "RSA_KEY_SIZE",
    "SYMMETRIC_KEY_SIZE",
    "RelayKeyPair",
    "SymmetricKey",
    "export_public_key",
    "generate_asymmetric_key_pair",
    "generate_symmetric_key",
    "import_private_key",
    "import_public_key",
    "seal_symmetric_key",
    "symmetric_decrypt",
    "symmetric_encrypt",
    "unseal_symmetric_key",
]

"""Hybrid cipher: RSA-OAEP key sealing plus AES-256-GCM bodies.

Each onion layer is protected by a fresh 256-bit AES key. That key is
sealed under the target relay's 2048-bit RSA public key (OAEP, MGF1 and
SHA-256), and the layer body is encrypted with AES-GCM under a random
96-bit nonce which is prepended to the ciphertext:

    blob = nonce (12 bytes) || ciphertext || tag (16 bytes)

All failures are reported as :class:`~onionnet.core.exceptions.CryptoError`
or, for unparseable key text, :class:`~onionnet.core.exceptions.ValidationError`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from onionnet.core.exceptions import CryptoError, ValidationError
from onionnet.crypto.encoding import b64decode, b64encode

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
SYMMETRIC_KEY_SIZE = 32  # 256 bits
NONCE_SIZE = 12  # 96 bits
TAG_SIZE = 16


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


# =============================================================================
# ASYMMETRIC KEYS
# =============================================================================


@dataclass(frozen=True)
class RelayKeyPair:
    """A relay's long-lived RSA key pair.

    Read-only after generation, so one instance may be shared by any number
    of concurrent hop operations.
    """

    private_key: rsa.RSAPrivateKey

    @classmethod
    def generate(cls) -> "RelayKeyPair":
        return cls(
            rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=RSA_KEY_SIZE,
            )
        )

    @classmethod
    def from_private_key_text(cls, text: str) -> "RelayKeyPair":
        return cls(import_private_key(text))

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()

    def export_public_key(self) -> str:
        """Base64 SubjectPublicKeyInfo (DER) of the public half."""
        return export_public_key(self.public_key)

    def export_private_key(self) -> str:
        """Base64 unencrypted PKCS#8 (DER) of the private half."""
        der = self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return b64encode(der)


def generate_asymmetric_key_pair() -> tuple[rsa.RSAPublicKey, rsa.RSAPrivateKey]:
    """Generate a fresh ``(public_key, private_key)`` pair for key wrapping."""
    pair = RelayKeyPair.generate()
    return pair.public_key, pair.private_key


def export_public_key(public_key: rsa.RSAPublicKey) -> str:
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return b64encode(der)


def import_public_key(text: str) -> rsa.RSAPublicKey:
    """Import a key produced by :func:`export_public_key`.

    Raises:
        ValidationError: If the text is not a base64 SPKI RSA public key.
    """
    der = b64decode(text, field="publicKey")
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ValidationError("not a well-formed exported public key", field="publicKey") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ValidationError("public key is not an RSA key", field="publicKey")
    return key


def import_private_key(text: str) -> rsa.RSAPrivateKey:
    """Import a key produced by :meth:`RelayKeyPair.export_private_key`."""
    der = b64decode(text, field="privateKey")
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ValidationError("not a well-formed exported private key", field="privateKey") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValidationError("private key is not an RSA key", field="privateKey")
    return key


# =============================================================================
# SYMMETRIC KEYS
# =============================================================================


@dataclass(frozen=True)
class SymmetricKey:
    """A single-use 256-bit AES-GCM key.

    One is generated per hop per message and dropped once its layer has been
    built or peeled.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != SYMMETRIC_KEY_SIZE:
            raise CryptoError(f"symmetric key must be {SYMMETRIC_KEY_SIZE} bytes, got {len(self.raw)}")

    def __repr__(self) -> str:
        return "SymmetricKey(<redacted>)"

    @classmethod
    def generate(cls) -> "SymmetricKey":
        return cls(AESGCM.generate_key(bit_length=SYMMETRIC_KEY_SIZE * 8))

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SymmetricKey":
        return cls(bytes(raw))

    def export(self) -> bytes:
        return self.raw


def generate_symmetric_key() -> SymmetricKey:
    return SymmetricKey.generate()


# =============================================================================
# SEAL / UNSEAL
# =============================================================================


def seal_symmetric_key(public_key: rsa.RSAPublicKey, symmetric_key: bytes) -> bytes:
    """RSA-OAEP encrypt exported symmetric key material under ``public_key``.

    Raises:
        CryptoError: If the key is unusable or the plaintext is too long for
            one OAEP block.
    """
    try:
        return public_key.encrypt(symmetric_key, _oaep())
    except (ValueError, TypeError, AttributeError) as e:
        raise CryptoError(f"failed to seal symmetric key: {e}") from e


def unseal_symmetric_key(private_key: rsa.RSAPrivateKey, ciphertext: bytes) -> bytes:
    """Inverse of :func:`seal_symmetric_key`.

    Raises:
        CryptoError: On corrupted ciphertext or the wrong private key.
    """
    try:
        return private_key.decrypt(ciphertext, _oaep())
    except (ValueError, TypeError, AttributeError) as e:
        raise CryptoError("failed to unseal symmetric key") from e


# =============================================================================
# AUTHENTICATED ENCRYPTION
# =============================================================================


def symmetric_encrypt(key: SymmetricKey, plaintext: bytes) -> bytes:
    """Encrypt with AES-256-GCM under a fresh random nonce.

    Returns:
        ``nonce || ciphertext || tag``.
    """
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key.raw).encrypt(nonce, plaintext, None)


def symmetric_decrypt(key: SymmetricKey, blob: bytes) -> bytes:
    """Split the nonce prefix off ``blob`` and authenticate-decrypt the rest.

    Raises:
        CryptoError: If the blob is truncated, tampered with, or was
            encrypted under a different key.
    """
    if len(blob) < NONCE_SIZE:
        raise CryptoError(f"ciphertext too short: {len(blob)} bytes")
    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return AESGCM(key.raw).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise CryptoError("ciphertext authentication failed") from e

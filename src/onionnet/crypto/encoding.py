"""Base64 text encoding for byte fields that cross the wire.

Kept apart from the cipher calls: the cipher works on bytes, JSON bodies
carry text.
"""

from __future__ import annotations

import base64
import binascii

from onionnet.core.exceptions import ValidationError


def b64encode(data: bytes) -> str:
    """Encode ``data`` as standard base64 text."""
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str, field: str | None = None) -> bytes:
    """Decode standard base64 text, rejecting anything malformed.

    Raises:
        ValidationError: If ``text`` is not a string of valid base64.
    """
    if not isinstance(text, str):
        raise ValidationError("expected base64 text", field=field, value=type(text).__name__)
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValidationError("malformed base64", field=field) from e

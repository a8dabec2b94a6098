"""
Byte/text encoding helpers shared across PQID.

- standard base64 (padded) for keys and signatures on the wire
- base64url without padding for the DID key segment
"""

from __future__ import annotations

import base64
import binascii


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    """Strict standard base64 decode. Raises ValueError on malformed input."""
    if not isinstance(data, str):
        raise ValueError("invalid base64")
    try:
        return base64.b64decode(data.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise ValueError("invalid base64") from None


def b64url_encode(data: bytes) -> str:
    """Encode bytes to URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(token: str) -> bytes:
    """Decode URL-safe base64 with or without padding. Raises ValueError."""
    if not isinstance(token, str):
        raise ValueError("invalid base64url")
    s = token.strip()
    if s == "":
        raise ValueError("invalid base64url")
    pad = "=" * (-len(s) % 4)
    try:
        return base64.b64decode((s + pad).encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise ValueError("invalid base64url") from None

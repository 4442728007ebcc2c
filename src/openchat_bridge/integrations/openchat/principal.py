"""Textual and binary forms of platform principals.

The textual form is the lowercase base32 (no padding) rendering of
`crc32(raw) || raw`, split into groups of five characters joined by `-`.
"""

from __future__ import annotations

import base64
import zlib
from typing import Union

from .errors import InvalidPrincipalError

MAX_PRINCIPAL_BYTES = 29
_GROUP = 5

RawPrincipal = Union[str, bytes, bytearray, memoryview, list, tuple]


def principal_to_text(raw: bytes) -> str:
    if len(raw) > MAX_PRINCIPAL_BYTES:
        raise InvalidPrincipalError(
            f"principal is {len(raw)} bytes; at most {MAX_PRINCIPAL_BYTES} allowed"
        )
    checksum = zlib.crc32(raw).to_bytes(4, "big")
    encoded = base64.b32encode(checksum + raw).decode("ascii").lower().rstrip("=")
    return "-".join(encoded[i : i + _GROUP] for i in range(0, len(encoded), _GROUP))


def principal_from_text(text: str) -> bytes:
    if not isinstance(text, str) or not text.strip():
        raise InvalidPrincipalError("principal text must be a non-empty string")
    compact = text.strip().replace("-", "").upper()
    padding = "=" * (-len(compact) % 8)
    try:
        decoded = base64.b32decode(compact + padding)
    except (ValueError, TypeError) as exc:
        raise InvalidPrincipalError(f"invalid principal text {text!r}") from exc
    if len(decoded) < 4:
        raise InvalidPrincipalError(f"principal text too short: {text!r}")
    raw = decoded[4:]
    if len(raw) > MAX_PRINCIPAL_BYTES:
        raise InvalidPrincipalError(f"principal too long: {text!r}")
    if zlib.crc32(raw).to_bytes(4, "big") != decoded[:4]:
        raise InvalidPrincipalError(f"principal checksum mismatch: {text!r}")
    if principal_to_text(raw) != text.strip().lower():
        raise InvalidPrincipalError(f"principal text is not canonical: {text!r}")
    return raw


def decode_principal(value: RawPrincipal) -> str:
    """Return the textual principal for any wire representation."""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        try:
            value = bytes(value)
        except (TypeError, ValueError) as exc:
            raise InvalidPrincipalError("principal byte list is malformed") from exc
    if isinstance(value, (bytes, bytearray, memoryview)):
        return principal_to_text(bytes(value))
    raise InvalidPrincipalError(f"unsupported principal type {type(value).__name__}")

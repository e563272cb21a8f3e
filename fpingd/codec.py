from __future__ import annotations

import base64
import binascii

import cbor2

from .constants import K_BASE64
from .errors import MalformedPayload


def encode(obj) -> bytes:
    return cbor2.dumps(obj)


def decode(b: bytes):
    return cbor2.loads(b)


def pack_data(data: dict) -> dict:
    """Wrap a data map as a single base64 encoded CBOR field."""
    return {K_BASE64: base64.b64encode(encode(data)).decode("ascii")}


def unpack_data(data: dict) -> dict:
    """Inverse of pack_data. Plain maps pass through unchanged."""
    if not isinstance(data, dict) or K_BASE64 not in data:
        return data

    raw = data[K_BASE64]
    if not isinstance(raw, str):
        raise MalformedPayload(K_BASE64, "wrapped payload must be a base64 string")
    try:
        inner = decode(base64.b64decode(raw, validate=True))
    except (binascii.Error, cbor2.CBORDecodeError) as e:
        raise MalformedPayload(K_BASE64, f"bad wrapped payload: {e}") from e

    if not isinstance(inner, dict):
        raise MalformedPayload(K_BASE64, "wrapped payload must be a CBOR map")
    return inner

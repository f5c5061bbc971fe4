"""Reversible obfuscation for exported save files.

This deters casual reading and editing of a save file; it is not encryption.
The format is fixed so previously exported files keep importing:

    base64( xor( base64(utf8(text)), KEY ) )

The XOR runs over the characters of the inner base64 text, which are ASCII, so
the intermediate string is always ASCII as well.
"""
from __future__ import annotations

import base64
import binascii
import logging

from ..errors import DecodeError

logger = logging.getLogger(__name__)

OBFUSCATION_KEY = "FIQuest2025"

DECODE_FAILED_MESSAGE = "Failed to decrypt data - invalid encryption or corrupted file"


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


def obfuscate(text: str, key: str = OBFUSCATION_KEY) -> str:
    inner = base64.b64encode(text.encode("utf-8"))
    return base64.b64encode(_xor(inner, key.encode("ascii"))).decode("ascii")


def deobfuscate(payload: str, key: str = OBFUSCATION_KEY) -> str:
    """Reverse :func:`obfuscate`.

    Raises DecodeError for anything that is not an obfuscated payload: plain JSON,
    truncated files, a wrong key. Never returns partially decoded text.
    """
    if not isinstance(payload, str):
        raise DecodeError(DECODE_FAILED_MESSAGE)
    try:
        outer = base64.b64decode("".join(payload.split()), validate=True)
        inner = _xor(outer, key.encode("ascii"))
        return base64.b64decode(inner, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        # UnicodeDecodeError is a ValueError
        logger.warning("Could not decode obfuscated payload: %s", exc)
        raise DecodeError(DECODE_FAILED_MESSAGE) from exc

from __future__ import annotations

import json
from typing import Any


def compact_dumps(obj: Any) -> str:
    """Compact JSON in insertion order, the shape hashed for integrity checks.

    - No whitespace (compact separators)
    - Non-ASCII kept as-is
    """
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def pretty_dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def rolling_hash(text: str) -> str:
    """32-bit ``h * 31 + unit`` hash over UTF-16 code units, rendered as signed hex.

    Not cryptographic: collisions are easy to find. It only flags gross corruption.
    """
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return format(h, "x") if h >= 0 else "-" + format(-h, "x")

"""XOR checksum used by the ANT serial message format.

The checksum of a message is the XOR of every byte that precedes it,
starting with the sync byte.
"""

from __future__ import annotations

from functools import reduce


def xor_checksum(data: bytes, initial: int = 0) -> int:
    """Return the 8-bit XOR of ``data``, seeded with ``initial``."""
    return reduce(lambda acc, b: acc ^ b, data, initial) & 0xFF

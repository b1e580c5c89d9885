"""
Request/trace id helpers.
"""
import os
import time

CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _encode(num: int, length: int) -> str:
    chars = []
    for _ in range(length):
        num, remainder = divmod(num, 32)
        chars.append(CROCKFORD[remainder])
    return "".join(reversed(chars))


def ulid() -> str:
    """
    26-char ULID: 48-bit millisecond timestamp (10 chars) + 80 random bits (16 chars).
    Lexicographically sortable by creation time.
    """
    timestamp = int(time.time() * 1000)
    randomness = int.from_bytes(os.urandom(10), "big")
    return f"{_encode(timestamp, 10)}{_encode(randomness, 16)}"


def request_id(header_value: str | None = None) -> str:
    """Use the incoming header value when present, otherwise a new ULID."""
    if header_value and header_value.strip():
        return header_value.strip()
    return ulid()

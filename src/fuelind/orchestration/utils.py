"""Small helpers shared by the driver, the block sources and the CLI.

Functions
---------
- backoff_delay: capped exponential delay for the n-th consecutive failure.
- hex_to_bytes / bytes_to_hex: 0x-hex <-> bytes at the edges of the system.
- parse_u64: parse a GraphQL U64 (decimal string) into an int.
- iter_strides: split an inclusive height range into fixed-size strides.
"""

from __future__ import annotations

from collections.abc import Generator

from fuelind.core.constants import U64_MAX


def backoff_delay(attempt: int, base_s: float, max_s: float) -> float:
    """Delay before retry number `attempt` (1-based): base * 2**(attempt-1), capped."""
    if attempt < 1:
        return 0.0
    return min(max_s, base_s * (2 ** (attempt - 1)))


def hex_to_bytes(value: str | None) -> bytes | None:
    """Decode a hex string with or without 0x prefix; None stays None."""
    if value is None:
        return None
    s = value[2:] if value[:2].lower() == "0x" else value
    return bytes.fromhex(s)


def bytes_to_hex(value: bytes | None) -> str | None:
    """Return lowercase 0x-hex for `value`, or None."""
    if value is None:
        return None
    return "0x" + value.hex()


def parse_u64(value: str | int | None) -> int | None:
    """Parse a U64 scalar (decimal string, 0x-hex string or int)."""
    if value is None:
        return None
    if isinstance(value, int):
        n = value
    else:
        s = value.strip().lower()
        n = int(s, 16) if s.startswith("0x") else int(s)
    if not 0 <= n <= U64_MAX:
        raise ValueError(f"{value!r} is out of u64 range")
    return n


def iter_strides(a: int, b: int, step: int) -> Generator[tuple[int, int], None, None]:
    """Yield inclusive [start, end] height ranges of size at most `step`."""
    x = a
    while x <= b:
        y = min(b, x + step - 1)
        yield (x, y)
        x = y + 1

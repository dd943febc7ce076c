from __future__ import annotations

"""
hunterkit.core.utils
====================

Small dependency-free helpers: interval jitter and short random identifiers.
"""

from secrets import choice, randbelow

from .types import DEFAULT_NANOID_ALPHABET, DEFAULT_NANOID_SIZE


def jitter_ms(base_ms: int, *, pct: float = 0.10, floor_ms: int = 0) -> int:
    """
    Spread `base_ms` uniformly over [base - base*pct, base + base*pct].

    Used for the polling interval so that clients started together do not hit
    the coordinator in lockstep.

        jitter_ms(900_000)          -> value in [810_000..990_000]
        jitter_ms(1000, pct=0.5)    -> value in [500..1500]
    """
    if base_ms <= 0 or pct <= 0:
        return max(floor_ms, base_ms)
    span = int(base_ms * pct)
    delta = randbelow(2 * span + 1) - span
    return max(floor_ms, base_ms + delta)


def nanoid(size: int = DEFAULT_NANOID_SIZE, alphabet: str = DEFAULT_NANOID_ALPHABET) -> str:
    """URL-safe random identifier (used for cycle ids in logs and spans)."""
    if size <= 0:
        raise ValueError("size must be positive")
    if not alphabet:
        raise ValueError("alphabet must be a non-empty string")
    return "".join(choice(alphabet) for _ in range(size))

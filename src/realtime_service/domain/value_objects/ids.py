from __future__ import annotations

from typing import NewType

# "<lower user id>:<higher user id>"; at most one call per unordered pair.
CallId = NewType("CallId", str)


def pair_key(user_a: int, user_b: int) -> CallId:
    low, high = sorted((user_a, user_b))
    return CallId(f"{low}:{high}")

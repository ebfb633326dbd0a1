from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class RateLimitStore(Protocol):
    """Persistence for per-provider call timestamps (epoch seconds)."""

    def get(self, provider_id: str) -> list[float]: ...

    def put(self, provider_id: str, timestamps: Sequence[float]) -> None: ...

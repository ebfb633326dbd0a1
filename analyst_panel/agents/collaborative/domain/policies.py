from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

MINUTE_WINDOW_SECONDS = 60.0
DAY_WINDOW_SECONDS = 24 * 60 * 60.0

DEFAULT_QUORUM = 2


@dataclass(frozen=True)
class RateLimit:
    per_minute: int | None = None
    per_day: int | None = None

    @property
    def is_unbounded(self) -> bool:
        return self.per_minute is None and self.per_day is None


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    reason: str
    minute_count: int = 0
    day_count: int = 0


def prune_timestamps(timestamps: Iterable[float], now: float) -> list[float]:
    """Drop entries that fell out of the rolling day window, keeping order."""
    cutoff = now - DAY_WINDOW_SECONDS
    return sorted(ts for ts in timestamps if ts > cutoff)


def evaluate_admission(
    timestamps: Sequence[float], limit: RateLimit | None, now: float
) -> AdmissionDecision:
    if limit is None or limit.is_unbounded:
        return AdmissionDecision(allowed=True, reason="")

    minute_cutoff = now - MINUTE_WINDOW_SECONDS
    day_cutoff = now - DAY_WINDOW_SECONDS
    minute_count = sum(1 for ts in timestamps if ts > minute_cutoff)
    day_count = sum(1 for ts in timestamps if ts > day_cutoff)

    if limit.per_day is not None and day_count >= limit.per_day:
        return AdmissionDecision(
            allowed=False,
            reason=f"daily request limit reached ({day_count}/{limit.per_day})",
            minute_count=minute_count,
            day_count=day_count,
        )
    if limit.per_minute is not None and minute_count >= limit.per_minute:
        return AdmissionDecision(
            allowed=False,
            reason=(
                f"per-minute request limit reached ({minute_count}/{limit.per_minute})"
            ),
            minute_count=minute_count,
            day_count=day_count,
        )

    usage = []
    if limit.per_minute is not None:
        usage.append(f"minute {minute_count}/{limit.per_minute}")
    if limit.per_day is not None:
        usage.append(f"day {day_count}/{limit.per_day}")
    return AdmissionDecision(
        allowed=True,
        reason=", ".join(usage),
        minute_count=minute_count,
        day_count=day_count,
    )


class QuorumPolicy(str, Enum):
    COUNT = "count"
    COUNT_PLUS_MANDATORY = "count_plus_mandatory"


@dataclass(frozen=True)
class QuorumRule:
    quorum: int = DEFAULT_QUORUM
    policy: QuorumPolicy = QuorumPolicy.COUNT
    mandatory_provider_ids: tuple[str, ...] = ()

    @property
    def requires_mandatory(self) -> bool:
        return self.policy is QuorumPolicy.COUNT_PLUS_MANDATORY and bool(
            self.mandatory_provider_ids
        )


def category_for_model(model_id: str) -> str:
    """Map a hosted model id onto its vendor display category."""
    lowered = model_id.lower()
    if "openai" in lowered:
        return "openai"
    if "microsoft" in lowered:
        return "microsoft"
    if "meta" in lowered or "llama" in lowered:
        return "meta"
    if "cohere" in lowered:
        return "cohere"
    if "xai" in lowered or "grok" in lowered:
        return "xai"
    if "ai21" in lowered:
        return "ai21"
    if "deepseek" in lowered:
        return "deepseek"
    return "github"

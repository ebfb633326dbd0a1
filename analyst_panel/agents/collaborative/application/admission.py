from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping

from analyst_panel.agents.collaborative.data.ports import RateLimitStore
from analyst_panel.agents.collaborative.domain.policies import (
    AdmissionDecision,
    RateLimit,
    evaluate_admission,
    prune_timestamps,
)
from analyst_panel.shared.kernel.tools.logger import get_logger, log_event

logger = get_logger(__name__)


class _ProviderLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_provider(self, provider_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(provider_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[provider_id] = lock
            return lock


class AdmissionController:
    """
    Sliding-window admission for provider calls.

    ``check_admission`` only reads. ``record_call`` is the single mutation and
    ``admit`` runs the check and the record under the provider's lock, so two
    concurrent runs cannot both take the last free slot.
    """

    def __init__(
        self,
        store: RateLimitStore,
        limits: Mapping[str, RateLimit] | None = None,
        *,
        clock: Callable[[], float] = time.time,
        _locks: _ProviderLocks | None = None,
    ) -> None:
        self.store = store
        self.limits: dict[str, RateLimit] = dict(limits or {})
        self._clock = clock
        self._locks = _locks or _ProviderLocks()

    def with_limits(self, limits: Mapping[str, RateLimit]) -> AdmissionController:
        return AdmissionController(
            self.store, limits, clock=self._clock, _locks=self._locks
        )

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def _window(self, provider_id: str, now: float) -> list[float]:
        return prune_timestamps(self.store.get(provider_id), now)

    def check_admission(
        self, provider_id: str, now: float | None = None
    ) -> AdmissionDecision:
        limit = self.limits.get(provider_id)
        if limit is None or limit.is_unbounded:
            return AdmissionDecision(allowed=True, reason="")
        current = self._now(now)
        return evaluate_admission(self._window(provider_id, current), limit, current)

    def record_call(self, provider_id: str, now: float | None = None) -> None:
        current = self._now(now)
        with self._locks.for_provider(provider_id):
            self._append(provider_id, current)

    def _append(self, provider_id: str, now: float) -> None:
        timestamps = self._window(provider_id, now)
        timestamps.append(now)
        self.store.put(provider_id, timestamps)

    def admit(self, provider_id: str, now: float | None = None) -> AdmissionDecision:
        current = self._now(now)
        with self._locks.for_provider(provider_id):
            decision = self.check_admission(provider_id, current)
            if decision.allowed:
                self._append(provider_id, current)
        if not decision.allowed:
            log_event(
                logger,
                event="admission_denied",
                message="provider call denied by rate limit",
                error_code="PROVIDER_RATE_LIMITED",
                fields={
                    "provider_id": provider_id,
                    "reason": decision.reason,
                    "minute_count": decision.minute_count,
                    "day_count": decision.day_count,
                },
            )
        return decision

    def status(self, now: float | None = None) -> dict[str, AdmissionDecision]:
        current = self._now(now)
        return {
            provider_id: self.check_admission(provider_id, current)
            for provider_id in self.limits
        }

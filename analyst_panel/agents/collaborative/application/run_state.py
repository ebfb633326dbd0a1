from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum

from analyst_panel.agents.collaborative.application.ports import (
    DisableSink,
    ProgressSink,
)
from analyst_panel.agents.collaborative.application.registry import PanelMember
from analyst_panel.agents.collaborative.domain.errors import AnalysisPipelineError
from analyst_panel.agents.collaborative.domain.models import AnalysisSubject
from analyst_panel.agents.collaborative.domain.policies import QuorumRule
from analyst_panel.agents.collaborative.interface.contracts import AnalysisSettings
from analyst_panel.shared.kernel.tools.logger import get_logger, log_event

logger = get_logger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    CONTEXT = "context"
    FAN_OUT = "fan_out"
    QUORUM_CHECK = "quorum_check"
    SYNTHESIS = "synthesis"
    DONE = "done"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[RunPhase, frozenset[RunPhase]] = {
    RunPhase.IDLE: frozenset({RunPhase.CONTEXT}),
    RunPhase.CONTEXT: frozenset({RunPhase.FAN_OUT}),
    RunPhase.FAN_OUT: frozenset({RunPhase.QUORUM_CHECK}),
    RunPhase.QUORUM_CHECK: frozenset({RunPhase.SYNTHESIS, RunPhase.FAILED}),
    RunPhase.SYNTHESIS: frozenset({RunPhase.DONE, RunPhase.FAILED}),
    RunPhase.DONE: frozenset(),
    RunPhase.FAILED: frozenset(),
}


class InvalidPhaseTransition(RuntimeError):
    pass


class SerializedSink:
    """Callable wrapper that lets concurrent tasks and threads share one sink."""

    def __init__(self, sink: ProgressSink) -> None:
        self._sink = sink
        self._lock = threading.Lock()

    def __call__(self, message: str) -> None:
        with self._lock:
            self._sink(message)


@dataclass
class RunState:
    """Transient state of one orchestration call. Not resumable."""

    subject: AnalysisSubject
    settings: AnalysisSettings
    members: list[PanelMember]
    progress_sink: ProgressSink
    disable_sink: DisableSink
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    phase: RunPhase = RunPhase.IDLE
    cancelled: bool = False
    error: AnalysisPipelineError | None = None
    _disabled: set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self) -> None:
        self.progress_sink = SerializedSink(self.progress_sink)
        self.disable_sink = SerializedSink(self.disable_sink)

    @property
    def rule(self) -> QuorumRule:
        return self.settings.quorum_rule()

    def is_cancelled(self) -> bool:
        return self.cancelled

    def cancel(self) -> None:
        self.cancelled = True

    def emit(self, message: str) -> None:
        if self.cancelled:
            return
        self.progress_sink(message)

    def disable(self, provider_id: str) -> None:
        with self._lock:
            if self.cancelled or provider_id in self._disabled:
                return
            self._disabled.add(provider_id)
        log_event(
            logger,
            event="provider_disable_requested",
            message="asking caller to disable rate-limited provider",
            fields={"provider_id": provider_id},
        )
        self.disable_sink(provider_id)

    def transition(self, target: RunPhase, message: str) -> None:
        if self.cancelled:
            return
        if target not in _ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidPhaseTransition(
                f"cannot move from {self.phase.value} to {target.value}"
            )
        previous = self.phase
        self.phase = target
        log_event(
            logger,
            event="run_phase_transition",
            message="collaborative analysis phase changed",
            fields={
                "run_id": self.run_id,
                "from_phase": previous.value,
                "to_phase": target.value,
            },
        )
        self.emit(message)

    def fail(self, error: AnalysisPipelineError) -> None:
        self.error = error
        self.transition(
            RunPhase.FAILED, f"Analysis failed during {error.phase}: {error.message}"
        )

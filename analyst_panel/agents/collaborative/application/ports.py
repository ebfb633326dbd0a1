from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    AnalystOpinion,
    ContextDigest,
    FinalDecision,
    TaggedOpinion,
)

ProgressSink = Callable[[str], None]
DisableSink = Callable[[str], None]


class AnalystProvider(Protocol):
    async def analyze(
        self, subject: AnalysisSubject, context: ContextDigest | None
    ) -> AnalystOpinion: ...


class ContextProvider(Protocol):
    async def collect(self, subject: AnalysisSubject) -> ContextDigest | None: ...


class SynthesisProvider(Protocol):
    async def synthesize(
        self,
        opinions: Sequence[TaggedOpinion],
        subject: AnalysisSubject,
        context: ContextDigest | None,
    ) -> FinalDecision: ...


class StructuredChainLike(Protocol):
    async def ainvoke(self, payload: object) -> object: ...


class LLMLike(Protocol):
    def with_structured_output(self, schema: type[object]) -> object: ...

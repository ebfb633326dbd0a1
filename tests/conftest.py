import asyncio
from collections.abc import Sequence

import pytest

from analyst_panel.agents.collaborative.application.admission import (
    AdmissionController,
)
from analyst_panel.agents.collaborative.application.orchestrator import (
    CollaborativeAnalysisOrchestrator,
)
from analyst_panel.agents.collaborative.application.registry import (
    ProviderDeclaration,
    ProviderRegistry,
)
from analyst_panel.agents.collaborative.data.rate_limit_store import (
    InMemoryRateLimitStore,
)
from analyst_panel.agents.collaborative.domain.models import (
    Action,
    AnalysisSubject,
    AnalystOpinion,
    BaselineReport,
    Confidence,
    ContextDigest,
    FinalDecision,
    ProviderDescriptor,
    ScoredDimension,
    Stance,
    TaggedOpinion,
)


def make_opinion(
    score: float = 70.0, stance: Stance = Stance.BULLISH
) -> AnalystOpinion:
    dimension = ScoredDimension(score=score, rationale="data-backed")
    return AnalystOpinion(
        stance=stance,
        fundamentals=dimension,
        technicals=dimension,
        momentum=dimension,
        risk_assessment=dimension,
    )


def make_decision(score: float = 72.0) -> FinalDecision:
    return FinalDecision(
        composite_score=score,
        action=Action.ACT,
        confidence=Confidence.MEDIUM,
        rationale="Panel leans constructive.",
        key_reasons=["Revenue growth", "Trend intact"],
    )


class FakeAnalyst:
    """Scripted analyst: returns an opinion, raises, or sleeps."""

    def __init__(self, opinion=None, error=None, delay: float = 0.0) -> None:
        self.opinion = opinion or make_opinion()
        self.error = error
        self.delay = delay
        self.calls: list[tuple[AnalysisSubject, ContextDigest | None]] = []

    async def analyze(self, subject, context):
        self.calls.append((subject, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.opinion


class FakeSynthesis:
    def __init__(self, decision=None, error=None, delay: float = 0.0) -> None:
        self.decision = decision or make_decision()
        self.error = error
        self.delay = delay
        self.calls: list[tuple[list[TaggedOpinion], AnalysisSubject, object]] = []

    async def synthesize(self, opinions: Sequence[TaggedOpinion], subject, context):
        self.calls.append((list(opinions), subject, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.decision


class FakeContext:
    def __init__(self, digest=None, error=None, delay: float = 0.0) -> None:
        self.digest = digest
        self.error = error
        self.delay = delay
        self.calls = 0

    async def collect(self, subject):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.digest


class Recorder:
    """Progress/disable sink that keeps everything it was given."""

    def __init__(self) -> None:
        self.items: list[str] = []

    def __call__(self, value: str) -> None:
        self.items.append(value)

    def mentions(self, text: str) -> bool:
        return any(text in item for item in self.items)


def build_registry(
    analysts: dict[str, object],
    *,
    unconfigured: Sequence[str] = (),
    baseline: Sequence[str] = (),
) -> ProviderRegistry:
    declarations = [
        ProviderDeclaration(
            id=provider_id,
            name=provider_id.upper(),
            host=provider_id,
            baseline=provider_id in baseline,
        )
        for provider_id in analysts
    ]

    def factory(descriptor: ProviderDescriptor, host: str):
        return analysts[descriptor.id]

    return ProviderRegistry(
        declarations,
        is_host_configured=lambda host: host not in unconfigured,
        analyst_factory=factory,
    )


def build_orchestrator(
    analysts: dict[str, object],
    *,
    synthesis: FakeSynthesis | None = None,
    context: FakeContext | None = None,
    store: InMemoryRateLimitStore | None = None,
    unconfigured: Sequence[str] = (),
    baseline: Sequence[str] = (),
) -> CollaborativeAnalysisOrchestrator:
    return CollaborativeAnalysisOrchestrator(
        registry=build_registry(
            analysts, unconfigured=unconfigured, baseline=baseline
        ),
        admission=AdmissionController(store or InMemoryRateLimitStore()),
        synthesis_provider=synthesis or FakeSynthesis(),
        context_provider=context,
    )


@pytest.fixture
def subject() -> AnalysisSubject:
    return AnalysisSubject(
        ticker="2330",
        name="TSMC",
        baseline=BaselineReport(
            score=81.5,
            metrics={"revenue_growth": 32.1, "roe": 28.4},
            matched_criteria=["Revenue growth > 20%", "Price above MA20"],
        ),
    )


@pytest.fixture
def digest() -> ContextDigest:
    return ContextDigest(
        sentiment="positive",
        summary="Demand for AI accelerators keeps rising.",
        key_points=["Record quarterly revenue"],
        article_count=4,
    )

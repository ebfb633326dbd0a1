from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator, Sequence
from dataclasses import dataclass
from functools import cached_property

from analyst_panel.agents.collaborative.application.admission import (
    AdmissionController,
)
from analyst_panel.agents.collaborative.application.context_collector import (
    ContextCollector,
)
from analyst_panel.agents.collaborative.application.fan_out import (
    FanOutInvoker,
    ProviderOutcome,
    QuorumAggregator,
    skipped_provider_ids,
)
from analyst_panel.agents.collaborative.application.ports import (
    ContextProvider,
    DisableSink,
    ProgressSink,
    SynthesisProvider,
)
from analyst_panel.agents.collaborative.application.registry import ProviderRegistry
from analyst_panel.agents.collaborative.application.run_state import (
    RunPhase,
    RunState,
)
from analyst_panel.agents.collaborative.application.synthesis import SynthesisStage
from analyst_panel.agents.collaborative.domain.errors import (
    ConfigurationError,
    InsufficientQuorum,
    SynthesisFailure,
)
from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    CollaborativeReport,
    ContextDigest,
    TaggedOpinion,
)
from analyst_panel.agents.collaborative.domain.policies import QuorumPolicy
from analyst_panel.agents.collaborative.interface.contracts import AnalysisSettings
from analyst_panel.agents.collaborative.subgraph import build_collaborative_subgraph
from analyst_panel.shared.kernel.tools.logger import get_logger, log_context, log_event

logger = get_logger(__name__)


def _ignore(_: str) -> None:
    return None


@dataclass
class AnalysisRun:
    """Handle on an analysis started with ``start_analysis``."""

    state: RunState
    task: asyncio.Task[CollaborativeReport]

    @property
    def run_id(self) -> str:
        return self.state.run_id

    @property
    def phase(self) -> RunPhase:
        return self.state.phase

    def cancel(self) -> None:
        self.state.cancel()
        self.task.cancel()

    def __await__(self) -> Generator[object, None, CollaborativeReport]:
        return self.task.__await__()


@dataclass(frozen=True)
class CollaborativeAnalysisOrchestrator:
    registry: ProviderRegistry
    admission: AdmissionController
    synthesis_provider: SynthesisProvider
    context_provider: ContextProvider | None = None

    @cached_property
    def graph(self):
        return build_collaborative_subgraph(self)

    def prepare_run(
        self,
        subject: AnalysisSubject,
        settings: AnalysisSettings,
        progress_sink: ProgressSink = _ignore,
        disable_sink: DisableSink = _ignore,
    ) -> RunState:
        """
        Resolve the panel and build the run state.

        Raises ``ConfigurationError`` before any provider, context or store
        access when nothing usable is enabled.
        """
        descriptors = self.registry.resolve(settings)
        if not descriptors:
            log_event(
                logger,
                event="run_configuration_invalid",
                message="no analysis providers are configured and enabled",
                level=logging.ERROR,
                error_code=ConfigurationError.error_code,
                fields={"ticker": subject.ticker},
            )
            raise ConfigurationError("no analysis providers are configured and enabled")

        resolved_ids = {descriptor.id for descriptor in descriptors}
        if settings.quorum_policy is QuorumPolicy.COUNT_PLUS_MANDATORY:
            if not settings.mandatory_provider_ids:
                settings = settings.model_copy(
                    update={"mandatory_provider_ids": self.registry.baseline_ids()}
                )
            if not settings.mandatory_provider_ids:
                log_event(
                    logger,
                    event="run_configuration_invalid",
                    message="mandatory quorum policy without a mandatory analyst",
                    level=logging.ERROR,
                    error_code=ConfigurationError.error_code,
                    fields={"ticker": subject.ticker},
                )
                raise ConfigurationError(
                    "quorum policy requires a mandatory analyst but none is declared"
                )
            unresolved = [
                provider_id
                for provider_id in settings.mandatory_provider_ids
                if provider_id not in resolved_ids
            ]
            if len(unresolved) == len(settings.mandatory_provider_ids):
                log_event(
                    logger,
                    event="run_configuration_invalid",
                    message="mandatory analyst is not enabled or not configured",
                    level=logging.ERROR,
                    error_code=ConfigurationError.error_code,
                    fields={"ticker": subject.ticker, "mandatory_ids": unresolved},
                )
                raise ConfigurationError(
                    "mandatory analyst(s) not enabled or not configured: "
                    + ", ".join(unresolved)
                )

        if len(descriptors) < settings.quorum:
            log_event(
                logger,
                event="quorum_unreachable",
                message="fewer analysts enabled than the quorum requires",
                level=logging.WARNING,
                fields={
                    "ticker": subject.ticker,
                    "resolved_count": len(descriptors),
                    "quorum": settings.quorum,
                },
            )

        return RunState(
            subject=subject,
            settings=settings,
            members=self.registry.bind(descriptors, settings),
            progress_sink=progress_sink,
            disable_sink=disable_sink,
        )

    async def run_context_phase(self, run: RunState) -> dict[str, object]:
        run.transition(
            RunPhase.CONTEXT,
            f"Stage 1: collecting market context for {run.subject.ticker}...",
        )
        with log_context(phase=RunPhase.CONTEXT.value):
            collector = ContextCollector(
                provider=self.context_provider,
                timeout_seconds=run.settings.context_timeout_seconds,
            )
            digest = await collector.collect(run.subject, run.emit)
        return {"context": digest}

    async def run_fan_out_phase(
        self, run: RunState, context: ContextDigest | None
    ) -> dict[str, object]:
        names = ", ".join(member.descriptor.display_name for member in run.members)
        run.transition(
            RunPhase.FAN_OUT,
            f"Stage 2: analyst panel ({names}) is analyzing in parallel...",
        )
        with log_context(phase=RunPhase.FAN_OUT.value):
            admission = self.admission.with_limits(run.settings.rate_limit_map())
            invoker = FanOutInvoker(admission)
            outcomes = await invoker.dispatch(
                run.members,
                run.subject,
                context,
                run.emit,
                is_cancelled=run.is_cancelled,
            )
        # Sent before the quorum verdict, so a failing run still reports them.
        for provider_id in skipped_provider_ids(outcomes):
            run.disable(provider_id)
        return {"outcomes": outcomes}

    def run_quorum_check(
        self, run: RunState, outcomes: Sequence[ProviderOutcome]
    ) -> dict[str, object]:
        rule = run.rule
        succeeded = sum(1 for outcome in outcomes if outcome.opinion is not None)
        run.transition(
            RunPhase.QUORUM_CHECK,
            f"Checking quorum: {succeeded} of {len(run.members)} analyst report(s) "
            f"received, {rule.quorum} required.",
        )
        try:
            result = QuorumAggregator(rule).aggregate(run.members, outcomes)
        except InsufficientQuorum as exc:
            run.fail(exc)
            raise
        return {
            "opinions": result.opinions,
            "disabled_provider_ids": result.disabled_provider_ids,
        }

    async def run_synthesis_phase(
        self,
        run: RunState,
        opinions: Sequence[TaggedOpinion],
        context: ContextDigest | None,
    ) -> dict[str, object]:
        run.transition(
            RunPhase.SYNTHESIS,
            f"Decision stage: synthesizing {len(opinions)} analyst reports...",
        )
        stage = SynthesisStage(
            provider=self.synthesis_provider,
            timeout_seconds=run.settings.synthesis_timeout_seconds,
        )
        with log_context(phase=RunPhase.SYNTHESIS.value):
            try:
                decision = await stage.synthesize(opinions, run.subject, context)
            except SynthesisFailure as exc:
                run.fail(exc)
                raise
        return {"final_decision": decision}

    async def execute(self, run: RunState) -> CollaborativeReport:
        with log_context(run_id=run.run_id, ticker=run.subject.ticker):
            log_event(
                logger,
                event="collaborative_run_started",
                message="collaborative analysis started",
                fields={
                    "provider_ids": [member.provider_id for member in run.members],
                    "quorum": run.settings.quorum,
                    "quorum_policy": run.settings.quorum_policy.value,
                },
            )
            final_state = await self.graph.ainvoke({"run": run})
            report = CollaborativeReport(
                final_decision=final_state["final_decision"],
                opinions=list(final_state.get("opinions", [])),
                context=final_state.get("context"),
            )
            run.transition(RunPhase.DONE, "Collaborative analysis complete.")
            log_event(
                logger,
                event="collaborative_run_completed",
                message="collaborative analysis completed",
                fields={
                    "opinion_count": len(report.opinions),
                    "action": report.final_decision.action.value,
                    "composite_score": report.final_decision.composite_score,
                },
            )
            return report

    async def run_analysis(
        self,
        subject: AnalysisSubject,
        settings: AnalysisSettings,
        progress_sink: ProgressSink = _ignore,
        disable_sink: DisableSink = _ignore,
    ) -> CollaborativeReport:
        run = self.prepare_run(subject, settings, progress_sink, disable_sink)
        return await self.execute(run)

    def start_analysis(
        self,
        subject: AnalysisSubject,
        settings: AnalysisSettings,
        progress_sink: ProgressSink = _ignore,
        disable_sink: DisableSink = _ignore,
    ) -> AnalysisRun:
        """Must be called with a running event loop."""
        run = self.prepare_run(subject, settings, progress_sink, disable_sink)
        task = asyncio.get_running_loop().create_task(self.execute(run))
        return AnalysisRun(state=run, task=task)

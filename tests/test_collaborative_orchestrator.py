import asyncio
import time

import pytest
from conftest import (
    FakeAnalyst,
    FakeContext,
    FakeSynthesis,
    Recorder,
    build_orchestrator,
    make_opinion,
)

from analyst_panel.agents.collaborative.application.run_state import (
    InvalidPhaseTransition,
    RunPhase,
    RunState,
)
from analyst_panel.agents.collaborative.data.rate_limit_store import (
    InMemoryRateLimitStore,
)
from analyst_panel.agents.collaborative.domain.errors import (
    ConfigurationError,
    InsufficientQuorum,
    SynthesisFailure,
)
from analyst_panel.agents.collaborative.domain.policies import QuorumPolicy
from analyst_panel.agents.collaborative.interface.contracts import (
    AnalysisSettings,
    ProviderToggle,
    RateLimitDefinition,
)

PHASE_MESSAGE_PREFIXES = (
    "Stage 1:",
    "Stage 2:",
    "Checking quorum:",
    "Decision stage:",
    "Collaborative analysis complete.",
)


def _settings(*provider_ids: str, **overrides) -> AnalysisSettings:
    overrides.setdefault("rate_limits", {})
    return AnalysisSettings(
        providers={pid: ProviderToggle(enabled=True) for pid in provider_ids},
        **overrides,
    )


@pytest.mark.asyncio
async def test_exhausted_provider_is_skipped_and_disabled_once(subject):
    progress, disabled = Recorder(), Recorder()
    a, b, c = FakeAnalyst(), FakeAnalyst(), FakeAnalyst()
    store = InMemoryRateLimitStore({"a": [time.time() - 10]})
    orchestrator = build_orchestrator({"a": a, "b": b, "c": c}, store=store)
    settings = _settings(
        "a", "b", "c", rate_limits={"a": RateLimitDefinition(per_day=1)}
    )

    report = await orchestrator.run_analysis(subject, settings, progress, disabled)

    assert [item.provider_id for item in report.opinions] == ["b", "c"]
    assert disabled.items == ["a"]
    assert progress.mentions("'A' skipped")
    assert a.calls == []


@pytest.mark.asyncio
async def test_quorum_failure_never_reaches_synthesis(subject):
    progress = Recorder()
    synthesis = FakeSynthesis()
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst(error=RuntimeError("503"))},
        synthesis=synthesis,
    )

    with pytest.raises(InsufficientQuorum) as excinfo:
        await orchestrator.run_analysis(subject, _settings("a", "b"), progress)

    assert excinfo.value.success_count == 1
    assert synthesis.calls == []
    assert progress.mentions("'B' failed - 503")
    assert progress.items[-1].startswith("Analysis failed during quorum_check")


@pytest.mark.asyncio
async def test_fewer_enabled_than_quorum_fails_on_quorum(subject):
    synthesis = FakeSynthesis()
    orchestrator = build_orchestrator({"a": FakeAnalyst()}, synthesis=synthesis)

    with pytest.raises(InsufficientQuorum):
        await orchestrator.run_analysis(subject, _settings("a"))

    assert synthesis.calls == []


@pytest.mark.asyncio
async def test_partial_failure_still_produces_report(subject):
    progress = Recorder()
    orchestrator = build_orchestrator(
        {
            "a": FakeAnalyst(error=ValueError("schema mismatch")),
            "b": FakeAnalyst(opinion=make_opinion(60)),
            "c": FakeAnalyst(opinion=make_opinion(75)),
        }
    )

    report = await orchestrator.run_analysis(
        subject, _settings("a", "b", "c"), progress
    )

    assert [item.provider_id for item in report.opinions] == ["b", "c"]
    assert progress.mentions("'A' failed")


@pytest.mark.asyncio
async def test_run_without_context_provider(subject):
    synthesis = FakeSynthesis()
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()}, synthesis=synthesis
    )

    report = await orchestrator.run_analysis(subject, _settings("a", "b"))

    assert report.context is None
    assert synthesis.calls[0][2] is None


@pytest.mark.asyncio
async def test_context_timeout_is_not_fatal(subject, digest):
    context = FakeContext(digest=digest, delay=1.0)
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()}, context=context
    )

    report = await orchestrator.run_analysis(
        subject, _settings("a", "b", context_timeout_seconds=0.01)
    )

    assert report.context is None


@pytest.mark.asyncio
async def test_context_reaches_analysts_and_report(subject, digest):
    a, b = FakeAnalyst(), FakeAnalyst()
    orchestrator = build_orchestrator(
        {"a": a, "b": b}, context=FakeContext(digest=digest)
    )

    report = await orchestrator.run_analysis(subject, _settings("a", "b"))

    assert report.context == digest
    assert a.calls[0][1] == digest
    assert b.calls[0][1] == digest


@pytest.mark.asyncio
async def test_synthesis_error_fails_the_run(subject):
    progress = Recorder()
    cause = RuntimeError("model overloaded")
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()},
        synthesis=FakeSynthesis(error=cause),
    )

    with pytest.raises(SynthesisFailure) as excinfo:
        await orchestrator.run_analysis(subject, _settings("a", "b"), progress)

    assert excinfo.value.__cause__ is cause
    assert excinfo.value.phase == "synthesis"
    assert progress.items[-1].startswith("Analysis failed during synthesis")


@pytest.mark.asyncio
async def test_synthesis_timeout_fails_the_run(subject):
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()},
        synthesis=FakeSynthesis(delay=1.0),
    )

    with pytest.raises(SynthesisFailure, match="timed out"):
        await orchestrator.run_analysis(
            subject, _settings("a", "b", synthesis_timeout_seconds=0.01)
        )


@pytest.mark.asyncio
async def test_nothing_enabled_is_a_configuration_error(subject):
    progress = Recorder()
    a = FakeAnalyst()
    context = FakeContext()
    orchestrator = build_orchestrator({"a": a}, context=context)

    with pytest.raises(ConfigurationError):
        await orchestrator.run_analysis(subject, _settings(), progress)

    assert a.calls == []
    assert context.calls == 0
    assert progress.items == []


@pytest.mark.asyncio
async def test_unconfigured_providers_are_a_configuration_error(subject):
    orchestrator = build_orchestrator({"a": FakeAnalyst()}, unconfigured=("a",))

    with pytest.raises(ConfigurationError):
        await orchestrator.run_analysis(subject, _settings("a"))


@pytest.mark.asyncio
async def test_unresolved_mandatory_provider_is_a_configuration_error(subject):
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst(), "c": FakeAnalyst()}
    )
    settings = _settings(
        "b",
        "c",
        quorum_policy=QuorumPolicy.COUNT_PLUS_MANDATORY,
        mandatory_provider_ids=["a"],
    )

    with pytest.raises(ConfigurationError):
        await orchestrator.run_analysis(subject, settings)


@pytest.mark.asyncio
async def test_mandatory_policy_defaults_to_baseline_analysts(subject):
    orchestrator = build_orchestrator(
        {
            "a": FakeAnalyst(error=RuntimeError("quota")),
            "b": FakeAnalyst(),
            "c": FakeAnalyst(),
        },
        baseline=("a",),
    )
    settings = _settings(
        "a", "b", "c", quorum_policy=QuorumPolicy.COUNT_PLUS_MANDATORY
    )

    run = orchestrator.prepare_run(subject, settings)
    assert run.settings.mandatory_provider_ids == ["a"]
    with pytest.raises(InsufficientQuorum) as excinfo:
        await orchestrator.run_analysis(subject, settings)

    assert excinfo.value.missing_mandatory_ids == ["a"]
    assert settings.mandatory_provider_ids == []


@pytest.mark.asyncio
async def test_mandatory_policy_without_baseline_is_a_configuration_error(subject):
    a = FakeAnalyst()
    orchestrator = build_orchestrator({"a": a, "b": FakeAnalyst()})
    settings = _settings("a", "b", quorum_policy=QuorumPolicy.COUNT_PLUS_MANDATORY)

    with pytest.raises(ConfigurationError):
        await orchestrator.run_analysis(subject, settings)

    assert a.calls == []


class _DictAnalyst:
    async def analyze(self, subject, context):
        return {"stance": "sideways"}


class _BrokenStore(InMemoryRateLimitStore):
    def get(self, provider_id):
        if provider_id == "a":
            raise OSError("disk gone")
        return super().get(provider_id)


@pytest.mark.asyncio
async def test_malformed_analyst_result_does_not_abort_the_run(subject):
    progress = Recorder()
    orchestrator = build_orchestrator(
        {"a": _DictAnalyst(), "b": FakeAnalyst(), "c": FakeAnalyst()}
    )

    report = await orchestrator.run_analysis(
        subject, _settings("a", "b", "c"), progress
    )

    assert [item.provider_id for item in report.opinions] == ["b", "c"]
    assert progress.mentions("'A' failed - returned dict")


@pytest.mark.asyncio
async def test_rate_limit_store_error_does_not_abort_the_run(subject):
    progress = Recorder()
    disabled = Recorder()
    a = FakeAnalyst()
    orchestrator = build_orchestrator(
        {"a": a, "b": FakeAnalyst(), "c": FakeAnalyst()}, store=_BrokenStore()
    )
    settings = _settings(
        "a", "b", "c", rate_limits={"a": RateLimitDefinition(per_day=5)}
    )

    report = await orchestrator.run_analysis(subject, settings, progress, disabled)

    assert [item.provider_id for item in report.opinions] == ["b", "c"]
    assert a.calls == []
    assert disabled.items == []
    assert progress.mentions("'A' failed - request record unavailable: disk gone")


@pytest.mark.asyncio
async def test_each_phase_emits_exactly_one_message(subject, digest):
    progress = Recorder()
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()}, context=FakeContext(digest=digest)
    )

    run = orchestrator.start_analysis(subject, _settings("a", "b"), progress)
    await run

    assert run.phase is RunPhase.DONE
    phase_messages = [
        item for item in progress.items if item.startswith(PHASE_MESSAGE_PREFIXES)
    ]
    assert len(phase_messages) == len(PHASE_MESSAGE_PREFIXES)
    for message, prefix in zip(phase_messages, PHASE_MESSAGE_PREFIXES):
        assert message.startswith(prefix)
    assert "A, B" in phase_messages[1]


@pytest.mark.asyncio
async def test_cancel_stops_the_run_and_silences_sinks(subject):
    progress = Recorder()
    slow = {"a": FakeAnalyst(delay=5.0), "b": FakeAnalyst(delay=5.0)}
    synthesis = FakeSynthesis()
    orchestrator = build_orchestrator(slow, synthesis=synthesis)

    run = orchestrator.start_analysis(subject, _settings("a", "b"), progress)
    await asyncio.sleep(0.05)
    seen = len(progress.items)
    run.cancel()

    with pytest.raises(asyncio.CancelledError):
        await run

    assert run.state.cancelled
    assert len(progress.items) == seen
    assert synthesis.calls == []


def test_run_state_disables_each_provider_once(subject):
    disabled = Recorder()
    state = RunState(
        subject=subject,
        settings=AnalysisSettings(),
        members=[],
        progress_sink=Recorder(),
        disable_sink=disabled,
    )

    state.disable("xai/grok-3-mini")
    state.disable("xai/grok-3-mini")

    assert disabled.items == ["xai/grok-3-mini"]


def test_run_state_rejects_skipping_phases(subject):
    state = RunState(
        subject=subject,
        settings=AnalysisSettings(),
        members=[],
        progress_sink=Recorder(),
        disable_sink=Recorder(),
    )

    with pytest.raises(InvalidPhaseTransition):
        state.transition(RunPhase.SYNTHESIS, "too early")
    assert state.phase is RunPhase.IDLE

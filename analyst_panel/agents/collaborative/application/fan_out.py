from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from analyst_panel.agents.collaborative.application.admission import (
    AdmissionController,
)
from analyst_panel.agents.collaborative.application.ports import ProgressSink
from analyst_panel.agents.collaborative.application.registry import PanelMember
from analyst_panel.agents.collaborative.domain.errors import (
    InsufficientQuorum,
    ProviderFailure,
    RateLimited,
)
from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    AnalystOpinion,
    ContextDigest,
    TaggedOpinion,
)
from analyst_panel.agents.collaborative.domain.policies import QuorumRule
from analyst_panel.shared.kernel.tools.logger import get_logger, log_context, log_event

logger = get_logger(__name__)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ProviderOutcome:
    provider_id: str
    status: OutcomeStatus
    opinion: AnalystOpinion | None = None
    error: str | None = None


@dataclass(frozen=True)
class FanOutResult:
    opinions: list[TaggedOpinion]
    disabled_provider_ids: list[str]
    outcomes: list[ProviderOutcome] = field(default_factory=list)


def skipped_provider_ids(outcomes: Sequence[ProviderOutcome]) -> list[str]:
    seen: dict[str, None] = {}
    for outcome in outcomes:
        if outcome.status is OutcomeStatus.SKIPPED:
            seen.setdefault(outcome.provider_id, None)
    return list(seen)


def _never_cancelled() -> bool:
    return False


@dataclass(frozen=True)
class FanOutInvoker:
    admission: AdmissionController

    async def dispatch(
        self,
        members: Sequence[PanelMember],
        subject: AnalysisSubject,
        context: ContextDigest | None,
        emit: ProgressSink,
        *,
        is_cancelled: Callable[[], bool] = _never_cancelled,
    ) -> list[ProviderOutcome]:
        """
        Admit, then call every admitted provider concurrently and wait for all
        of them. Outcomes come back in panel order regardless of completion
        order; each call writes only its own slot.
        """
        slots: dict[str, ProviderOutcome | None] = {
            member.provider_id: None for member in members
        }
        admitted: list[PanelMember] = []
        for member in members:
            if is_cancelled():
                raise asyncio.CancelledError()
            try:
                decision = self.admission.admit(member.provider_id)
            except Exception as exc:
                self._record_admission_error(member, exc, emit, slots)
                continue
            if not decision.allowed:
                skip = RateLimited(member.provider_id, decision.reason)
                emit(
                    f"Analyst '{member.descriptor.display_name}' skipped, "
                    f"request limit reached: {skip.reason}"
                )
                slots[member.provider_id] = ProviderOutcome(
                    provider_id=member.provider_id,
                    status=OutcomeStatus.SKIPPED,
                    error=skip.reason,
                )
                continue
            admitted.append(member)

        for member in admitted:
            emit(f"Analyst '{member.descriptor.display_name}' is preparing a report...")

        calls = [
            self._invoke(member, subject, context, emit, slots, is_cancelled)
            for member in admitted
        ]
        await asyncio.gather(*calls)

        outcomes: list[ProviderOutcome] = []
        for member in members:
            outcome = slots[member.provider_id]
            if outcome is None:
                outcome = ProviderOutcome(
                    provider_id=member.provider_id,
                    status=OutcomeStatus.FAILURE,
                    error="no result recorded",
                )
            outcomes.append(outcome)
        return outcomes

    def _record_admission_error(
        self,
        member: PanelMember,
        exc: Exception,
        emit: ProgressSink,
        slots: dict[str, ProviderOutcome | None],
    ) -> None:
        """The call is never made: its request record cannot be read or written."""
        failure = ProviderFailure(
            member.provider_id,
            f"request record unavailable: {str(exc) or exc.__class__.__name__}",
        )
        log_event(
            logger,
            event="admission_store_failed",
            message="rate limit store error; provider not called",
            level=logging.ERROR,
            error_code="RATE_LIMIT_STORE_FAILED",
            fields={"provider_id": member.provider_id, "exception": str(exc)},
        )
        slots[member.provider_id] = ProviderOutcome(
            provider_id=member.provider_id,
            status=OutcomeStatus.FAILURE,
            error=failure.detail,
        )
        emit(
            f"Warning: analyst '{member.descriptor.display_name}' failed - "
            f"{failure.detail}"
        )

    async def _invoke(
        self,
        member: PanelMember,
        subject: AnalysisSubject,
        context: ContextDigest | None,
        emit: ProgressSink,
        slots: dict[str, ProviderOutcome | None],
        is_cancelled: Callable[[], bool],
    ) -> None:
        name = member.descriptor.display_name
        with log_context(provider_id=member.provider_id):
            failure: ProviderFailure | None = None
            opinion: AnalystOpinion | None = None
            try:
                result = await asyncio.wait_for(
                    member.provider.analyze(subject, context),
                    timeout=member.timeout_seconds,
                )
                if not isinstance(result, AnalystOpinion):
                    raise TypeError(
                        f"returned {type(result).__name__}, expected AnalystOpinion"
                    )
                opinion = result
            except asyncio.TimeoutError:
                failure = ProviderFailure(
                    member.provider_id,
                    f"timed out after {member.timeout_seconds:g}s",
                )
            except Exception as exc:
                failure = ProviderFailure(
                    member.provider_id, str(exc) or exc.__class__.__name__
                )

            if is_cancelled():
                return

            if failure is not None:
                log_event(
                    logger,
                    event="provider_call_failed",
                    message="analyst provider call failed",
                    level=logging.WARNING,
                    error_code="PROVIDER_FAILED",
                    fields={
                        "provider_id": member.provider_id,
                        "detail": failure.detail,
                    },
                )
                slots[member.provider_id] = ProviderOutcome(
                    provider_id=member.provider_id,
                    status=OutcomeStatus.FAILURE,
                    error=failure.detail,
                )
                emit(f"Warning: analyst '{name}' failed - {failure.detail}")
                return

            log_event(
                logger,
                event="provider_call_completed",
                message="analyst provider returned an opinion",
                fields={
                    "provider_id": member.provider_id,
                    "stance": opinion.stance.value,
                },
            )
            slots[member.provider_id] = ProviderOutcome(
                provider_id=member.provider_id,
                status=OutcomeStatus.SUCCESS,
                opinion=opinion,
            )
            emit(f"Analyst '{name}' submitted a report.")

    async def invoke_all(
        self,
        members: Sequence[PanelMember],
        subject: AnalysisSubject,
        context: ContextDigest | None,
        emit: ProgressSink,
        *,
        rule: QuorumRule,
        is_cancelled: Callable[[], bool] = _never_cancelled,
    ) -> FanOutResult:
        outcomes = await self.dispatch(
            members, subject, context, emit, is_cancelled=is_cancelled
        )
        return QuorumAggregator(rule).aggregate(members, outcomes)


@dataclass(frozen=True)
class QuorumAggregator:
    rule: QuorumRule

    def aggregate(
        self, members: Sequence[PanelMember], outcomes: Sequence[ProviderOutcome]
    ) -> FanOutResult:
        by_id = {outcome.provider_id: outcome for outcome in outcomes}
        opinions: list[TaggedOpinion] = []
        failed: list[str] = []
        succeeded: set[str] = set()
        for member in members:
            outcome = by_id.get(member.provider_id)
            if outcome is None:
                continue
            if outcome.status is OutcomeStatus.SUCCESS and outcome.opinion is not None:
                succeeded.add(member.provider_id)
                opinions.append(
                    TaggedOpinion(
                        provider_id=member.provider_id,
                        display_name=member.descriptor.display_name,
                        category=member.descriptor.category,
                        opinion=outcome.opinion,
                    )
                )
            elif outcome.status is OutcomeStatus.FAILURE:
                failed.append(member.provider_id)
        skipped = skipped_provider_ids(outcomes)

        missing_mandatory: list[str] = []
        if self.rule.requires_mandatory:
            mandatory_ids = [
                member.provider_id
                for member in members
                if member.mandatory
                or member.provider_id in self.rule.mandatory_provider_ids
            ]
            if not any(provider_id in succeeded for provider_id in mandatory_ids):
                missing_mandatory = mandatory_ids or list(
                    self.rule.mandatory_provider_ids
                )

        if len(opinions) < self.rule.quorum or missing_mandatory:
            if missing_mandatory:
                message = (
                    "mandatory analyst(s) "
                    f"{', '.join(missing_mandatory)} did not deliver a report"
                )
            else:
                message = (
                    f"only {len(opinions)} analyst report(s) succeeded, "
                    f"quorum is {self.rule.quorum}"
                )
            log_event(
                logger,
                event="quorum_not_met",
                message="insufficient analyst quorum",
                level=logging.ERROR,
                error_code=InsufficientQuorum.error_code,
                fields={
                    "success_count": len(opinions),
                    "quorum": self.rule.quorum,
                    "failed_provider_ids": failed,
                    "skipped_provider_ids": skipped,
                    "missing_mandatory_ids": missing_mandatory,
                },
            )
            raise InsufficientQuorum(
                message,
                success_count=len(opinions),
                quorum=self.rule.quorum,
                failed_provider_ids=failed,
                skipped_provider_ids=skipped,
                missing_mandatory_ids=missing_mandatory,
            )

        return FanOutResult(
            opinions=opinions,
            disabled_provider_ids=skipped,
            outcomes=list(outcomes),
        )

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from analyst_panel.agents.collaborative.application.ports import SynthesisProvider
from analyst_panel.agents.collaborative.domain.errors import SynthesisFailure
from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    ContextDigest,
    FinalDecision,
    TaggedOpinion,
)
from analyst_panel.shared.kernel.tools.logger import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class SynthesisStage:
    """Single reconciliation call. No retries here; any failure ends the run."""

    provider: SynthesisProvider
    timeout_seconds: float = 90.0

    async def synthesize(
        self,
        opinions: Sequence[TaggedOpinion],
        subject: AnalysisSubject,
        context: ContextDigest | None,
    ) -> FinalDecision:
        try:
            decision = await asyncio.wait_for(
                self.provider.synthesize(list(opinions), subject, context),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            log_event(
                logger,
                event="synthesis_timed_out",
                message="synthesis call timed out",
                level=logging.ERROR,
                error_code=SynthesisFailure.error_code,
                fields={
                    "ticker": subject.ticker,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            raise SynthesisFailure(
                f"synthesis timed out after {self.timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            log_event(
                logger,
                event="synthesis_failed",
                message="synthesis call failed",
                level=logging.ERROR,
                error_code=SynthesisFailure.error_code,
                fields={"ticker": subject.ticker, "exception": str(exc)},
            )
            raise SynthesisFailure(f"synthesis failed: {exc}") from exc

        if not isinstance(decision, FinalDecision):
            raise SynthesisFailure(
                f"synthesis returned {type(decision).__name__}, expected FinalDecision"
            )
        return decision

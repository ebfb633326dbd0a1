from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from analyst_panel.agents.collaborative.application.ports import (
    ContextProvider,
    ProgressSink,
)
from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    ContextDigest,
)
from analyst_panel.shared.kernel.tools.logger import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class ContextCollector:
    provider: ContextProvider | None
    timeout_seconds: float = 30.0

    async def collect(
        self, subject: AnalysisSubject, emit: ProgressSink
    ) -> ContextDigest | None:
        if self.provider is None:
            emit("No context provider configured; continuing without market context.")
            return None

        try:
            digest = await asyncio.wait_for(
                self.provider.collect(subject), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            log_event(
                logger,
                event="context_collection_timed_out",
                message="context collection timed out; continuing without context",
                level=logging.WARNING,
                error_code="CONTEXT_TIMEOUT",
                fields={
                    "ticker": subject.ticker,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            emit(
                "Context collection timed out after "
                f"{self.timeout_seconds:g}s (skipped)."
            )
            return None
        except Exception as exc:
            log_event(
                logger,
                event="context_collection_failed",
                message="context collection failed; continuing without context",
                level=logging.WARNING,
                error_code="CONTEXT_FAILED",
                fields={"ticker": subject.ticker, "exception": str(exc)},
            )
            emit(f"Context collection failed (skipped): {exc}")
            return None

        if digest is None:
            emit(f"No relevant market news found for {subject.ticker}.")
            return None

        log_event(
            logger,
            event="context_collection_completed",
            message="context digest collected",
            fields={
                "ticker": subject.ticker,
                "sentiment": digest.sentiment,
                "article_count": digest.article_count,
                "source": digest.source,
            },
        )
        emit(
            f"News sentiment analysis complete ({digest.sentiment}, "
            f"{digest.article_count} articles, source: {digest.source})."
        )
        return digest

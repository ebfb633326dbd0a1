from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from analyst_panel.agents.collaborative.domain.errors import ContextFailure
from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    ContextDigest,
    NewsArticle,
)
from analyst_panel.agents.collaborative.domain.services import (
    digest_from_labelled_articles,
)
from analyst_panel.shared.kernel.tools.logger import get_logger, log_event

logger = get_logger(__name__)

SearchArticlesFn = Callable[[str, str], Awaitable[Sequence[NewsArticle]]]
SummarizeFn = Callable[[str, Sequence[NewsArticle]], Awaitable[ContextDigest]]


class NewsSentimentContextProvider:
    """
    Context provider backed by a news search.

    Labelled articles are digested locally; unlabelled ones go to the LLM
    summarizer when one is configured.
    """

    def __init__(
        self,
        search_articles_fn: SearchArticlesFn,
        summarize_fn: SummarizeFn | None = None,
    ) -> None:
        self._search_articles = search_articles_fn
        self._summarize = summarize_fn

    async def collect(self, subject: AnalysisSubject) -> ContextDigest | None:
        raw_articles = await self._search_articles(subject.ticker, subject.name)
        articles = list(raw_articles or [])
        for index, article in enumerate(articles):
            if not isinstance(article, NewsArticle):
                raise ContextFailure(
                    f"news search returned {type(article).__name__} at index {index}"
                )
        if not articles:
            return None

        digest = digest_from_labelled_articles(articles)
        if digest is not None:
            return digest

        if self._summarize is None:
            log_event(
                logger,
                event="news_digest_unavailable",
                message="articles found but no summarizer configured",
                level=logging.WARNING,
                error_code="CONTEXT_SUMMARIZER_MISSING",
                fields={"ticker": subject.ticker, "article_count": len(articles)},
            )
            return None

        return await self._summarize(subject.ticker, articles)

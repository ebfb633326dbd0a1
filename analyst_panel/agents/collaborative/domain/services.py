from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from analyst_panel.agents.collaborative.domain.models import (
    ContextDigest,
    NewsArticle,
    SentimentLabel,
)

KEY_POINT_LIMIT = 3


def digest_from_labelled_articles(
    articles: Sequence[NewsArticle],
) -> ContextDigest | None:
    """
    Build a digest by majority vote over per-article sentiment labels.

    Returns None when the source did not label its articles, in which case
    the caller needs an LLM summary instead. A label wins only with a strict
    majority over each of the other two; ties fall back to neutral.
    """
    if not articles or articles[0].sentiment is None:
        return None

    counts = Counter(
        article.sentiment for article in articles if article.sentiment is not None
    )
    if not counts:
        return None

    positive = counts.get("positive", 0)
    negative = counts.get("negative", 0)
    neutral = counts.get("neutral", 0)
    overall: SentimentLabel = "neutral"
    if positive > negative and positive > neutral:
        overall = "positive"
    elif negative > positive and negative > neutral:
        overall = "negative"

    return ContextDigest(
        sentiment=overall,
        summary=(
            f"Based on {len(articles)} related articles, market sentiment "
            f"leans {overall}."
        ),
        key_points=[article.title for article in articles[:KEY_POINT_LIMIT]],
        article_count=len(articles),
        source="articles",
    )

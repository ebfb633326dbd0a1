import asyncio
import logging
import time

from ddgs import DDGS

from analyst_panel.agents.collaborative.domain.models import NewsArticle

logger = logging.getLogger(__name__)

SearchResult = dict[str, object]

DEFAULT_MAX_RESULTS = 10
DEFAULT_TIME_LIMIT = "w"
MAX_RETRIES = 2


def _is_no_results_error(err: Exception) -> bool:
    return "No results found" in str(err)


def build_news_query(ticker: str, name: str | None) -> str:
    if name and name.strip() and name.strip().upper() != ticker.upper():
        return f'"{name.strip()}" OR {ticker} stock'
    return f"{ticker} stock"


def _run_query(
    ddgs: DDGS, query: str, time_limit: str, limit: int
) -> list[SearchResult]:
    results = ddgs.news(
        query,
        region="wt-wt",
        safesearch="off",
        timelimit=time_limit,
        max_results=limit,
    )
    return list(results or [])


def _fetch_news_sync(query: str, time_limit: str, limit: int) -> list[SearchResult]:
    """Synchronous fetch with a short retry; an empty result is not retried."""
    last_error: Exception | None = None
    for attempt in range(MAX_RETRIES):
        try:
            with DDGS() as ddgs:
                search_start = time.perf_counter()
                results = _run_query(ddgs, query, time_limit, limit)
                logger.debug(
                    f"news search took {time.perf_counter() - search_start:.2f}s "
                    f"for query='{query[:60]}'"
                )
                return results
        except Exception as e:
            if _is_no_results_error(e):
                logger.info(f"News search returned no results for query='{query[:80]}'")
                return []
            last_error = e
            if attempt < MAX_RETRIES - 1:
                time.sleep(1)

    if last_error is not None:
        raise last_error
    return []


def to_news_article(result: SearchResult) -> NewsArticle | None:
    title = str(result.get("title") or "").strip()
    if not title:
        return None
    date = result.get("date")
    return NewsArticle(
        title=title,
        description=str(result.get("body") or result.get("snippet") or ""),
        url=str(result.get("url") or result.get("link") or ""),
        published_at=str(date) if date else None,
    )


def _dedupe(articles: list[NewsArticle]) -> list[NewsArticle]:
    seen: set[str] = set()
    unique: list[NewsArticle] = []
    for article in articles:
        key = article.url or article.title
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


async def search_news_articles(
    ticker: str,
    name: str | None = None,
    *,
    max_results: int = DEFAULT_MAX_RESULTS,
    time_limit: str = DEFAULT_TIME_LIMIT,
) -> list[NewsArticle]:
    """Recent news for a ticker from DuckDuckGo, run in a worker thread."""
    query = build_news_query(ticker, name)
    results = await asyncio.to_thread(_fetch_news_sync, query, time_limit, max_results)
    articles = [article for article in map(to_news_article, results) if article]
    return _dedupe(articles)

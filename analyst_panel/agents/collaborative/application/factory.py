from __future__ import annotations

from sqlalchemy import Engine

from analyst_panel.agents.collaborative.application.admission import (
    AdmissionController,
)
from analyst_panel.agents.collaborative.application.orchestrator import (
    CollaborativeAnalysisOrchestrator,
)
from analyst_panel.agents.collaborative.application.ports import AnalystProvider
from analyst_panel.agents.collaborative.application.registry import (
    ProviderDeclaration,
    ProviderRegistry,
)
from analyst_panel.agents.collaborative.data.clients.llm_analyst import (
    LLMAnalystProvider,
    LLMNewsSummarizer,
    LLMSynthesisProvider,
)
from analyst_panel.agents.collaborative.data.clients.news_context import (
    NewsSentimentContextProvider,
)
from analyst_panel.agents.collaborative.data.clients.news_search import (
    search_news_articles,
)
from analyst_panel.agents.collaborative.data.ports import RateLimitStore
from analyst_panel.agents.collaborative.data.rate_limit_store import (
    SqlAlchemyRateLimitStore,
)
from analyst_panel.agents.collaborative.domain.models import ProviderDescriptor
from analyst_panel.agents.collaborative.domain.policies import RateLimit
from analyst_panel.config.providers import DEFAULT_RATE_LIMITS, PROVIDER_CONFIGS
from analyst_panel.infrastructure.database import create_rate_limit_engine
from analyst_panel.infrastructure.llm.provider import (
    get_llm_for_host,
    get_synthesis_llm,
    is_host_configured,
)


def _build_llm_analyst(descriptor: ProviderDescriptor, host: str) -> AnalystProvider:
    llm = get_llm_for_host(host, descriptor.model or descriptor.id)
    return LLMAnalystProvider(llm, role=descriptor.role)


def build_provider_registry() -> ProviderRegistry:
    return ProviderRegistry(
        [ProviderDeclaration.from_config(raw) for raw in PROVIDER_CONFIGS],
        is_host_configured=is_host_configured,
        analyst_factory=_build_llm_analyst,
    )


def build_default_rate_limits() -> dict[str, RateLimit]:
    return {
        provider_id: RateLimit(**limits)
        for provider_id, limits in DEFAULT_RATE_LIMITS.items()
    }


def build_news_context_provider() -> NewsSentimentContextProvider:
    summarize_fn = (
        LLMNewsSummarizer(lambda: get_synthesis_llm())
        if is_host_configured("gemini")
        else None
    )
    return NewsSentimentContextProvider(search_news_articles, summarize_fn)


def build_collaborative_orchestrator(
    *,
    store: RateLimitStore | None = None,
    engine: Engine | None = None,
    with_context: bool = True,
) -> CollaborativeAnalysisOrchestrator:
    if store is None:
        store = SqlAlchemyRateLimitStore(engine or create_rate_limit_engine())
    return CollaborativeAnalysisOrchestrator(
        registry=build_provider_registry(),
        admission=AdmissionController(store, build_default_rate_limits()),
        synthesis_provider=LLMSynthesisProvider(lambda: get_synthesis_llm()),
        context_provider=build_news_context_provider() if with_context else None,
    )

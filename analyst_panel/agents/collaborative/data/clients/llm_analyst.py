from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel

from analyst_panel.agents.collaborative.application.ports import (
    LLMLike,
    StructuredChainLike,
)
from analyst_panel.agents.collaborative.domain.errors import ContextFailure
from analyst_panel.agents.collaborative.domain.models import (
    AnalysisSubject,
    AnalystOpinion,
    AnalystRole,
    ContextDigest,
    FinalDecision,
    NewsArticle,
    TaggedOpinion,
)
from analyst_panel.agents.collaborative.domain.prompt_builder import (
    ANALYST_USER_PROMPT,
    NEWS_DIGEST_SYSTEM_PROMPT,
    NEWS_DIGEST_USER_PROMPT,
    SYNTHESIS_SYSTEM_PROMPT,
    SYNTHESIS_USER_PROMPT,
    render_articles,
    render_context,
    render_opinions,
    render_subject,
    system_prompt_for_role,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def coerce_structured_output(
    value: object, model_type: type[ModelT], *, context: str
) -> ModelT:
    """Accept a parsed model, a model of another class, or a plain mapping."""
    if isinstance(value, model_type):
        return value
    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        value = model_dump(mode="json")
    if not isinstance(value, dict):
        raise TypeError(f"{context} output must serialize to JSON object")
    return model_type.model_validate(value)


def _build_chain(
    llm: LLMLike, system_prompt: str, user_prompt: str, schema: type[BaseModel]
) -> StructuredChainLike:
    prompt = ChatPromptTemplate.from_messages(
        [("system", system_prompt), ("user", user_prompt)]
    )
    return prompt | llm.with_structured_output(schema)


class LLMAnalystProvider:
    """One analyst on the panel: a role prompt bound to one model."""

    def __init__(self, llm: LLMLike, role: AnalystRole = AnalystRole.NEUTRAL) -> None:
        self.role = role
        self._chain = _build_chain(
            llm, system_prompt_for_role(role), ANALYST_USER_PROMPT, AnalystOpinion
        )

    async def analyze(
        self, subject: AnalysisSubject, context: ContextDigest | None
    ) -> AnalystOpinion:
        result = await self._chain.ainvoke(
            {
                "ticker": subject.ticker,
                "name": subject.name,
                "subject": render_subject(subject),
                "context": render_context(context),
            }
        )
        return coerce_structured_output(
            result, AnalystOpinion, context=f"{self.role.value} analyst"
        )


class LLMSynthesisProvider:
    """Builds the model per call; a missing credential fails the run, not startup."""

    def __init__(self, get_llm_fn: Callable[[], LLMLike]) -> None:
        self._get_llm = get_llm_fn

    async def synthesize(
        self,
        opinions: Sequence[TaggedOpinion],
        subject: AnalysisSubject,
        context: ContextDigest | None,
    ) -> FinalDecision:
        chain = _build_chain(
            self._get_llm(),
            SYNTHESIS_SYSTEM_PROMPT,
            SYNTHESIS_USER_PROMPT,
            FinalDecision,
        )
        result = await chain.ainvoke(
            {
                "ticker": subject.ticker,
                "name": subject.name,
                "context": render_context(context),
                "reports": render_opinions(opinions),
            }
        )
        return coerce_structured_output(result, FinalDecision, context="synthesis")


class LLMNewsSummarizer:
    """Summarizes unlabelled articles into a digest."""

    def __init__(self, get_llm_fn: Callable[[], LLMLike]) -> None:
        self._get_llm = get_llm_fn

    async def __call__(
        self, ticker: str, articles: Sequence[NewsArticle]
    ) -> ContextDigest:
        chain = _build_chain(
            self._get_llm(),
            NEWS_DIGEST_SYSTEM_PROMPT,
            NEWS_DIGEST_USER_PROMPT,
            ContextDigest,
        )
        result = await chain.ainvoke(
            {"ticker": ticker, "articles": render_articles(articles)}
        )
        try:
            digest = coerce_structured_output(
                result, ContextDigest, context="news digest"
            )
        except (TypeError, ValueError) as exc:
            raise ContextFailure(f"news digest was not usable: {exc}") from exc
        return digest.model_copy(
            update={"article_count": len(articles), "source": "llm"}
        )

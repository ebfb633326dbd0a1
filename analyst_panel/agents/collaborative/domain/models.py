from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    """Display tag for a provider, resolved once when its descriptor is built."""

    GEMINI = "gemini"
    GROQ = "groq"
    OPENAI = "openai"
    MICROSOFT = "microsoft"
    META = "meta"
    COHERE = "cohere"
    XAI = "xai"
    AI21 = "ai21"
    DEEPSEEK = "deepseek"
    GITHUB = "github"


class AnalystRole(str, Enum):
    PRO = "pro"
    CON = "con"
    NEUTRAL = "neutral"
    QUANT = "quant"
    NEWS_HOUND = "news_hound"
    CHARTIST = "chartist"


class Stance(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Action(str, Enum):
    ACT = "act"
    HOLD = "hold"
    AVOID = "avoid"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ProviderDescriptor(_FrozenModel):
    id: str
    display_name: str
    category: Category
    is_configured: bool
    role: AnalystRole = AnalystRole.NEUTRAL
    model: str | None = None


# --- Subject (supplied by the upstream screener) ---


class LayerScores(_FrozenModel):
    fundamentals: float = 0.0
    technicals: float = 0.0
    momentum: float = 0.0
    risk: float = 0.0


class BaselineReport(_FrozenModel):
    score: float = Field(default=0.0, ge=0, le=100)
    layer_scores: LayerScores = Field(default_factory=LayerScores)
    metrics: dict[str, float | str | None] = Field(default_factory=dict)
    matched_criteria: list[str] = Field(default_factory=list)


class AnalysisSubject(_FrozenModel):
    ticker: str
    name: str
    baseline: BaselineReport = Field(default_factory=BaselineReport)


# --- Opinions ---


class ScoredDimension(_FrozenModel):
    score: float = Field(..., ge=0, le=100, description="Score from 0 to 100.")
    rationale: str = Field(..., description="Brief reasoning for the score.")


class AnalystOpinion(_FrozenModel):
    stance: Stance = Field(..., description="Overall stance on the subject.")
    fundamentals: ScoredDimension
    technicals: ScoredDimension
    momentum: ScoredDimension
    risk_assessment: ScoredDimension

    def dimensions(self) -> dict[str, ScoredDimension]:
        return {
            "fundamentals": self.fundamentals,
            "technicals": self.technicals,
            "momentum": self.momentum,
            "risk_assessment": self.risk_assessment,
        }


class TaggedOpinion(_FrozenModel):
    provider_id: str
    display_name: str
    category: Category
    opinion: AnalystOpinion


# --- Context ---

SentimentLabel = Literal["positive", "negative", "neutral"]


class ContextDigest(_FrozenModel):
    sentiment: SentimentLabel = Field(..., description="Overall news sentiment.")
    summary: str = Field(..., description="One sentence on the recent news focus.")
    key_points: list[str] = Field(
        default_factory=list, description="Two or three most influential events."
    )
    article_count: int = Field(default=0, ge=0)
    source: Literal["articles", "llm"] = "articles"


class NewsArticle(_FrozenModel):
    title: str
    description: str = ""
    url: str = ""
    published_at: str | None = None
    sentiment: SentimentLabel | None = None


# --- Decision ---


class FinalDecision(_FrozenModel):
    composite_score: float = Field(
        ..., ge=0, le=100, description="Final composite score (0-100)."
    )
    action: Action = Field(..., description="act, hold or avoid.")
    confidence: Confidence = Field(
        ..., description="Higher when the analysts broadly agree."
    )
    rationale: str = Field(
        ..., description="How the reports were weighed against each other."
    )
    key_reasons: list[str] = Field(default_factory=list)
    position_sizing: str = Field(
        default="", description="Suggested position size relative to a full stake."
    )
    stop_conditions: list[str] = Field(
        default_factory=list, description="Conditions that invalidate the decision."
    )
    watch_items: list[str] = Field(
        default_factory=list, description="Signals to monitor after acting."
    )


class CollaborativeReport(_FrozenModel):
    final_decision: FinalDecision
    opinions: list[TaggedOpinion]
    context: ContextDigest | None = None

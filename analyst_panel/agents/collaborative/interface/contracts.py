from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from analyst_panel.agents.collaborative.domain.models import AnalysisSubject
from analyst_panel.agents.collaborative.domain.policies import (
    QuorumPolicy,
    QuorumRule,
    RateLimit,
)
from analyst_panel.config.llm_config import DEFAULT_QUORUM
from analyst_panel.config.providers import DEFAULT_RATE_LIMITS


class ProviderToggle(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    variant: str | None = None
    timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("variant", mode="before")
    @classmethod
    def _blank_variant(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class RateLimitDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    per_minute: int | None = Field(default=None, ge=1)
    per_day: int | None = Field(default=None, ge=1)

    def to_rate_limit(self) -> RateLimit:
        return RateLimit(per_minute=self.per_minute, per_day=self.per_day)


def _default_rate_limits() -> dict[str, RateLimitDefinition]:
    return {
        provider_id: RateLimitDefinition(**limits)
        for provider_id, limits in DEFAULT_RATE_LIMITS.items()
    }


class AnalysisSettings(BaseModel):
    """Caller settings for one collaborative analysis run."""

    model_config = ConfigDict(extra="ignore")

    providers: dict[str, ProviderToggle] = Field(default_factory=dict)
    quorum: int = Field(default=DEFAULT_QUORUM, ge=1)
    quorum_policy: QuorumPolicy = QuorumPolicy.COUNT
    # Empty under count_plus_mandatory: the baseline analysts are mandatory
    mandatory_provider_ids: list[str] = Field(default_factory=list)
    rate_limits: dict[str, RateLimitDefinition] = Field(
        default_factory=_default_rate_limits
    )
    provider_timeout_seconds: float = Field(default=60.0, gt=0)
    context_timeout_seconds: float = Field(default=30.0, gt=0)
    synthesis_timeout_seconds: float = Field(default=90.0, gt=0)

    def quorum_rule(self) -> QuorumRule:
        return QuorumRule(
            quorum=self.quorum,
            policy=self.quorum_policy,
            mandatory_provider_ids=tuple(self.mandatory_provider_ids),
        )

    def rate_limit_map(self) -> dict[str, RateLimit]:
        return {
            provider_id: definition.to_rate_limit()
            for provider_id, definition in self.rate_limits.items()
        }


class AnalysisRequest(BaseModel):
    subject: AnalysisSubject
    settings: AnalysisSettings = Field(default_factory=AnalysisSettings)

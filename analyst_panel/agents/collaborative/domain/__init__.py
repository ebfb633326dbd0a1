from .errors import (
    AnalysisPipelineError,
    ConfigurationError,
    ContextFailure,
    InsufficientQuorum,
    ProviderFailure,
    RateLimited,
    SynthesisFailure,
)
from .models import (
    AnalysisSubject,
    AnalystOpinion,
    CollaborativeReport,
    ContextDigest,
    FinalDecision,
    ProviderDescriptor,
    TaggedOpinion,
)
from .policies import QuorumPolicy, QuorumRule, RateLimit

__all__ = [
    "AnalysisPipelineError",
    "ConfigurationError",
    "ContextFailure",
    "InsufficientQuorum",
    "ProviderFailure",
    "RateLimited",
    "SynthesisFailure",
    "AnalysisSubject",
    "AnalystOpinion",
    "CollaborativeReport",
    "ContextDigest",
    "FinalDecision",
    "ProviderDescriptor",
    "TaggedOpinion",
    "QuorumPolicy",
    "QuorumRule",
    "RateLimit",
]

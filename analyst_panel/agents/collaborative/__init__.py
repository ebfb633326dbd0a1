from .application.orchestrator import AnalysisRun, CollaborativeAnalysisOrchestrator
from .application.run_state import RunPhase
from .interface.contracts import AnalysisRequest, AnalysisSettings, ProviderToggle

__all__ = [
    "AnalysisRun",
    "CollaborativeAnalysisOrchestrator",
    "RunPhase",
    "AnalysisRequest",
    "AnalysisSettings",
    "ProviderToggle",
]

import asyncio
import sys

from analyst_panel.agents.collaborative.application.factory import (
    build_collaborative_orchestrator,
)
from analyst_panel.agents.collaborative.domain.errors import AnalysisPipelineError
from analyst_panel.agents.collaborative.domain.models import AnalysisSubject
from analyst_panel.agents.collaborative.interface.contracts import (
    AnalysisSettings,
    ProviderToggle,
)
from analyst_panel.shared.kernel.tools.logger import configure_logging


def _settings_for_configured_providers(orchestrator) -> AnalysisSettings:
    providers = {
        descriptor.id: ProviderToggle(enabled=True)
        for descriptor in orchestrator.registry.describe_all()
        if descriptor.is_configured
    }
    return AnalysisSettings(providers=providers)


async def run(ticker: str, name: str) -> int:
    orchestrator = build_collaborative_orchestrator()
    settings = _settings_for_configured_providers(orchestrator)
    subject = AnalysisSubject(ticker=ticker, name=name)

    try:
        report = await orchestrator.run_analysis(
            subject,
            settings,
            progress_sink=lambda message: print(f"  {message}", flush=True),
            disable_sink=lambda provider_id: print(
                f"  [disabled] {provider_id}", flush=True
            ),
        )
    except AnalysisPipelineError as exc:
        print(f"\n=== Analysis Failed ({exc.error_code}) ===\n{exc.message}")
        return 1

    decision = report.final_decision
    print("\n=== Final Decision ===")
    print(f"Action: {decision.action.value}  Confidence: {decision.confidence.value}")
    print(f"Composite score: {decision.composite_score:.1f}/100")
    print(f"Rationale: {decision.rationale}")
    for reason in decision.key_reasons:
        print(f"  - {reason}")
    print(f"\nReports used: {', '.join(o.display_name for o in report.opinions)}")
    return 0


def main() -> int:
    configure_logging()
    if len(sys.argv) < 2:
        print("usage: python main.py <TICKER> [NAME]")
        return 2
    ticker = sys.argv[1].strip().upper()
    name = " ".join(sys.argv[2:]).strip() or ticker
    print(f"=== Collaborative analysis for {name} ({ticker}) ===")
    return asyncio.run(run(ticker, name))


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping

from analyst_panel.agents.collaborative.domain.errors import AnalysisPipelineError
from analyst_panel.agents.collaborative.domain.models import (
    CollaborativeReport,
    ProviderDescriptor,
)
from analyst_panel.agents.collaborative.domain.policies import AdmissionDecision
from analyst_panel.shared.kernel.types import JSONObject


def build_report_payload(report: CollaborativeReport) -> JSONObject:
    return report.model_dump(mode="json")


def build_error_payload(error: Exception) -> JSONObject:
    if isinstance(error, AnalysisPipelineError):
        return error.to_payload()
    return {
        "error_code": "CONSENSUS_UNEXPECTED_ERROR",
        "phase": None,
        "message": str(error) or error.__class__.__name__,
    }


def build_provider_catalogue_payload(
    descriptors: Iterable[ProviderDescriptor],
) -> list[JSONObject]:
    return [descriptor.model_dump(mode="json") for descriptor in descriptors]


def build_rate_limit_status_payload(
    status: Mapping[str, AdmissionDecision],
) -> JSONObject:
    return {
        provider_id: {
            "allowed": decision.allowed,
            "reason": decision.reason,
            "minute_count": decision.minute_count,
            "day_count": decision.day_count,
        }
        for provider_id, decision in status.items()
    }


def format_sse_event(event: str, data: object) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"

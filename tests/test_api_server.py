import json
from dataclasses import replace

import pytest
from conftest import FakeAnalyst, FakeSynthesis, build_orchestrator
from fastapi.testclient import TestClient

from analyst_panel.agents.collaborative.application.admission import (
    AdmissionController,
)
from analyst_panel.agents.collaborative.data.rate_limit_store import (
    InMemoryRateLimitStore,
)
from analyst_panel.agents.collaborative.domain.policies import RateLimit
from api.server import app, get_orchestrator


def _parse_sse(text: str) -> list[tuple[str, dict]]:
    events = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def _request_body(*provider_ids: str) -> dict:
    return {
        "subject": {
            "ticker": "2330",
            "name": "TSMC",
            "baseline": {"score": 81.5, "matched_criteria": ["ROE > 15%"]},
        },
        "settings": {
            "providers": {pid: {"enabled": True} for pid in provider_ids},
            "rate_limits": {},
        },
    }


@pytest.fixture
def client_for():
    def _make(orchestrator):
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_health_check(client_for):
    client = client_for(build_orchestrator({"a": FakeAnalyst()}))

    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "analyst-panel"}


def test_provider_catalogue_reports_configuration(client_for):
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()}, unconfigured=("b",)
    )

    response = client_for(orchestrator).get("/providers")

    assert [(item["id"], item["is_configured"]) for item in response.json()] == [
        ("a", True),
        ("b", False),
    ]


def test_rate_limit_status(client_for):
    orchestrator = replace(
        build_orchestrator({"a": FakeAnalyst()}),
        admission=AdmissionController(
            InMemoryRateLimitStore(), {"a": RateLimit(per_minute=2)}
        ),
    )

    response = client_for(orchestrator).get("/rate-limits")

    assert response.json()["a"]["allowed"] is True
    assert response.json()["a"]["minute_count"] == 0


def test_analysis_streams_progress_then_report(client_for):
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst()}, synthesis=FakeSynthesis()
    )

    response = client_for(orchestrator).post("/analysis", json=_request_body("a", "b"))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _parse_sse(response.text)
    kinds = [kind for kind, _ in events]
    assert kinds[-1] == "report"
    assert set(kinds[:-1]) == {"progress"}
    assert events[0][1]["message"].startswith("Stage 1:")
    report = events[-1][1]
    assert [item["provider_id"] for item in report["opinions"]] == ["a", "b"]
    assert report["final_decision"]["action"] == "act"


def test_quorum_failure_ends_with_error_event(client_for):
    orchestrator = build_orchestrator(
        {"a": FakeAnalyst(), "b": FakeAnalyst(error=RuntimeError("502"))}
    )

    response = client_for(orchestrator).post("/analysis", json=_request_body("a", "b"))

    kind, payload = _parse_sse(response.text)[-1]
    assert kind == "error"
    assert payload["error_code"] == "CONSENSUS_INSUFFICIENT_QUORUM"
    assert payload["failed_provider_ids"] == ["b"]


def test_configuration_error_is_a_bad_request(client_for):
    orchestrator = build_orchestrator({"a": FakeAnalyst()})

    response = client_for(orchestrator).post("/analysis", json=_request_body())

    assert response.status_code == 400
    assert response.json()["detail"]["error_code"] == "CONSENSUS_CONFIGURATION_INVALID"

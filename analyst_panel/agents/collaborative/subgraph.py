"""
Collaborative analysis graph entrypoint owned by the collaborative agent package.
"""

from typing import Protocol

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from analyst_panel.agents.collaborative.application.fan_out import ProviderOutcome
from analyst_panel.agents.collaborative.application.run_state import RunState
from analyst_panel.agents.collaborative.domain.models import (
    ContextDigest,
    FinalDecision,
    TaggedOpinion,
)


class CollaborativeState(TypedDict, total=False):
    run: RunState
    context: ContextDigest | None
    outcomes: list[ProviderOutcome]
    opinions: list[TaggedOpinion]
    disabled_provider_ids: list[str]
    final_decision: FinalDecision


class CollaborativePhaseRunner(Protocol):
    async def run_context_phase(self, run: RunState) -> dict[str, object]: ...

    async def run_fan_out_phase(
        self, run: RunState, context: ContextDigest | None
    ) -> dict[str, object]: ...

    def run_quorum_check(
        self, run: RunState, outcomes: list[ProviderOutcome]
    ) -> dict[str, object]: ...

    async def run_synthesis_phase(
        self,
        run: RunState,
        opinions: list[TaggedOpinion],
        context: ContextDigest | None,
    ) -> dict[str, object]: ...


def build_collaborative_subgraph(runner: CollaborativePhaseRunner):
    """
    Build the linear context -> fan_out -> quorum_check -> synthesis graph.

    Nodes carry no retry policy: provider failures are already absorbed by the
    fan-out and a synthesis failure must end the run.
    """

    async def context_node(state: CollaborativeState) -> dict[str, object]:
        return await runner.run_context_phase(state["run"])

    async def fan_out_node(state: CollaborativeState) -> dict[str, object]:
        return await runner.run_fan_out_phase(state["run"], state.get("context"))

    async def quorum_check_node(state: CollaborativeState) -> dict[str, object]:
        return runner.run_quorum_check(state["run"], state.get("outcomes", []))

    async def synthesis_node(state: CollaborativeState) -> dict[str, object]:
        return await runner.run_synthesis_phase(
            state["run"], state.get("opinions", []), state.get("context")
        )

    builder = StateGraph(CollaborativeState)

    builder.add_node("context", context_node, metadata={"agent_id": "collaborative"})
    builder.add_node("fan_out", fan_out_node, metadata={"agent_id": "collaborative"})
    builder.add_node(
        "quorum_check", quorum_check_node, metadata={"agent_id": "collaborative"}
    )
    builder.add_node(
        "synthesis", synthesis_node, metadata={"agent_id": "collaborative"}
    )

    builder.add_edge(START, "context")
    builder.add_edge("context", "fan_out")
    builder.add_edge("fan_out", "quorum_check")
    builder.add_edge("quorum_check", "synthesis")
    builder.add_edge("synthesis", END)

    return builder.compile()

"""
tests/tools/test_agent_tool.py - Agent-as-Tool Tests
"""

import json

import pytest

from core.types import Agent
from core.state import create_run_state
from core.proto import RunConfig
from core.events import EventKind, ToolCallEnd
from gate.bases import GatewayError
from gate.mock import ScriptedGateway
from flow.loops import run
from tool import Catalog, agent_as_tool


def _setup(propagate_events="summary"):
    researcher = Agent(name="researcher", instructions="Find facts.")
    parent = Agent(
        name="lead",
        tools=[agent_as_tool(researcher, "research", propagate_events=propagate_events)],
    )
    return parent, Catalog([parent])


class TestAgentTool:

    @pytest.mark.asyncio
    async def test_child_output_becomes_tool_result(self):
        parent, catalog = _setup()
        gateway = ScriptedGateway()
        gateway.add_response("", [("research", {"input": "capital of France"})])
        gateway.add_response("Paris")
        gateway.add_response("The capital is Paris.")

        state = create_run_state("lead", "Tell me the capital of France")
        result = await run(state, RunConfig(catalog=catalog, gateway=gateway))

        assert result.completed
        assert result.output == "The capital is Paris."
        assert [c["agent"] for c in gateway.calls] == ["lead", "researcher", "lead"]
        assert result.final_state.messages[2].content == "Paris"

    @pytest.mark.asyncio
    async def test_summary_propagation(self):
        parent, catalog = _setup("summary")
        gateway = ScriptedGateway()
        gateway.add_response("", [("research", {"input": "q"})])
        gateway.add_response("answer")
        gateway.add_response("done")

        events = []
        state = create_run_state("lead", "go")
        await run(state, RunConfig(catalog=catalog, gateway=gateway, on_event=events.append))

        child_events = [e for e in events if e.run_id != state.run_id]
        assert [e.kind for e in child_events] == [EventKind.RUN_START, EventKind.FINAL_OUTPUT, EventKind.RUN_END]
        assert all(e.trace_id == state.trace_id for e in child_events)

    @pytest.mark.asyncio
    async def test_no_propagation(self):
        parent, catalog = _setup("none")
        gateway = ScriptedGateway()
        gateway.add_response("", [("research", {"input": "q"})])
        gateway.add_response("answer")
        gateway.add_response("done")

        events = []
        state = create_run_state("lead", "go")
        await run(state, RunConfig(catalog=catalog, gateway=gateway, on_event=events.append))
        assert all(e.run_id == state.run_id for e in events)

    @pytest.mark.asyncio
    async def test_child_failure_is_soft(self):
        parent, catalog = _setup()
        gateway = ScriptedGateway()
        gateway.add_response("", [("research", {"input": "q"})])
        gateway.add_error(GatewayError("child backend down"))
        gateway.add_response("Research is unavailable.")

        events = []
        state = create_run_state("lead", "go")
        result = await run(state, RunConfig(catalog=catalog, gateway=gateway, on_event=events.append))

        assert result.completed
        end = next(e for e in events if isinstance(e, ToolCallEnd))
        assert end.status == "execution_error"
        assert "model_provider_error" in json.loads(end.content)["message"]

    def test_rejects_unknown_propagation(self):
        with pytest.raises(ValueError):
            agent_as_tool(Agent(name="x"), propagate_events="some")

    @pytest.mark.asyncio
    async def test_child_definition_wins_over_catalog_namesake(self):
        researcher = Agent(name="researcher", instructions="Find facts.")
        stale = Agent(name="researcher", instructions="Outdated instructions.")
        parent = Agent(name="lead", tools=[agent_as_tool(researcher, "research")])
        gateway = ScriptedGateway()
        gateway.add_response("", [("research", {"input": "q"})])
        gateway.add_response("answer")
        gateway.add_response("done")

        state = create_run_state("lead", "go")
        result = await run(state, RunConfig(catalog=Catalog([parent, stale]), gateway=gateway))

        assert result.completed
        assert gateway.calls[1]["messages"][0].content == "Find facts."

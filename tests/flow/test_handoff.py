"""
tests/flow/test_handoff.py - Handoff Tests
"""

import pytest

from core.types import Agent
from core.state import create_run_state
from core.proto import ErrorKind, RunConfig
from core.events import HandoffDenied, HandoffEvent
from gate.mock import ScriptedGateway
from flow.loops import run
from tool import Catalog, handoff_tool


def agents(allowed=("billing",)):
    triage = Agent(
        name="triage",
        instructions="Route the customer.",
        tools=[handoff_tool("billing"), handoff_tool("sales")],
        handoffs=allowed,
    )
    billing = Agent(name="billing", instructions="Handle refunds.")
    return triage, billing


def handoff_script(target="billing"):
    gateway = ScriptedGateway()
    gateway.add_response("", [(f"handoff_to_{target}", {"reason": "refund request"})])
    gateway.add_response("Your refund is on its way.")
    return gateway


class TestHandoff:

    @pytest.mark.asyncio
    async def test_control_moves_to_target(self):
        gateway = handoff_script()
        events = []
        config = RunConfig(catalog=Catalog(agents()), gateway=gateway, on_event=events.append)

        result = await run(create_run_state("triage", "I want a refund"), config)

        assert result.completed
        assert result.output == "Your refund is on its way."
        assert result.final_state.current_agent_name == "billing"
        assert result.final_state.turn_count == 2
        assert [c["agent"] for c in gateway.calls] == ["triage", "billing"]
        assert gateway.calls[1]["messages"][0].content == "Handle refunds."
        handoff = next(e for e in events if isinstance(e, HandoffEvent))
        assert (handoff.from_agent, handoff.to_agent) == ("triage", "billing")

    @pytest.mark.asyncio
    async def test_handoff_without_consuming_turn(self):
        gateway = handoff_script()
        config = RunConfig(catalog=Catalog(agents()), gateway=gateway, handoff_consumes_turn=False)

        result = await run(create_run_state("triage", "I want a refund"), config)

        assert result.completed
        assert result.final_state.turn_count == 1

    @pytest.mark.asyncio
    async def test_disallowed_target(self):
        gateway = handoff_script("sales")
        events = []
        config = RunConfig(catalog=Catalog(agents()), gateway=gateway, on_event=events.append)

        result = await run(create_run_state("triage", "Buy more seats"), config)

        assert result.error.kind == ErrorKind.HANDOFF_ERROR
        assert "cannot handoff to sales" in result.error.detail
        assert result.final_state.current_agent_name == "triage"
        assert result.final_state.turn_count == 1
        assert gateway.call_count == 1
        denied = next(e for e in events if isinstance(e, HandoffDenied))
        assert denied.to_agent == "sales"

    @pytest.mark.asyncio
    async def test_target_missing_from_catalog(self):
        triage, _ = agents()
        config = RunConfig(catalog=Catalog([triage]), gateway=handoff_script())

        result = await run(create_run_state("triage", "I want a refund"), config)

        assert result.error.kind == ErrorKind.AGENT_NOT_FOUND
        assert result.final_state.current_agent_name == "billing"

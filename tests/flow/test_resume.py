"""
tests/flow/test_resume.py - Suspension and Resume Tests

A suspended run must resume exactly where it stopped: calls that already
ran are not repeated, and the paused tool gets its answers back in order.
"""

import json
import logging

import pytest

from core.types import Agent, MessageRole
from core.state import RunState, create_run_state
from core.proto import ErrorKind, RunConfig, RunStatus
from core.pauses import (
    ClarificationInterruption,
    ElicitationInterruption,
    Interruption,
    ToolAuthInterruption,
)
from core.events import ClarificationProvided, ClarificationRequested, ElicitationProvided, RunStart
from gate.mock import ScriptedGateway
from flow.loops import run
from flow.pause import provide_auth, provide_clarification, provide_elicitation, resolve
from tool import Catalog, FunctionTool, create_json_schema

NAME_SCHEMA = create_json_schema({"name": {"type": "string"}}, ["name"])
PAIR_SCHEMA = create_json_schema({"a": {"type": "number"}, "b": {"type": "number"}}, ["a", "b"])


def find_contact(name, context):
    pick = context.clarify(f"Which {name}?", ["Alice (Eng)", "Alice (Sales)"])
    return f"Contact: {pick}"


def contacts_agent(*extra_tools):
    tools = [FunctionTool(find_contact, name="find_contact", parameters=NAME_SCHEMA)] + list(extra_tools)
    return Agent(name="assistant", instructions="Help with contacts.", tools=tools)


def config_for(gateway, agent, **kwargs):
    return RunConfig(catalog=Catalog([agent]), gateway=gateway, **kwargs)


def lookup_script():
    gateway = ScriptedGateway()
    gateway.add_response("", [("find_contact", {"name": "Alice"})])
    gateway.add_response("Found Alice from Engineering.")
    return gateway


class TestClarification:

    @pytest.mark.asyncio
    async def test_interrupt_then_resume(self):
        gateway = lookup_script()
        config = config_for(gateway, contacts_agent())

        result = await run(create_run_state("assistant", "Find Alice"), config)

        assert result.status == RunStatus.INTERRUPTED
        interruption = result.interruptions[0]
        assert isinstance(interruption, ClarificationInterruption)
        assert interruption.id == "call_1:clarification:0"
        assert [o.label for o in interruption.options] == ["Alice (Eng)", "Alice (Sales)"]
        assert interruption.state == result.final_state
        assert result.final_state.turn_count == 0
        assert gateway.call_count == 1

        state = provide_clarification(result.final_state, interruption, "Alice (Eng)")
        resumed = await run(state, config)

        assert resumed.completed
        assert resumed.output == "Found Alice from Engineering."
        assert gateway.call_count == 2
        final = resumed.final_state
        assert final.messages[2].content == "Contact: Alice (Eng)"
        assert final.pending_resolutions == {}
        assert final.turn_count == 2

    @pytest.mark.asyncio
    async def test_resume_is_transparent(self):
        def direct_contact(name):
            return "Contact: Alice (Eng)"

        direct_agent = Agent(
            name="assistant",
            instructions="Help with contacts.",
            tools=[FunctionTool(direct_contact, name="find_contact", parameters=NAME_SCHEMA)],
        )
        direct = await run(create_run_state("assistant", "Find Alice"), config_for(lookup_script(), direct_agent))

        config = config_for(lookup_script(), contacts_agent())
        paused = await run(create_run_state("assistant", "Find Alice"), config)
        state = provide_clarification(paused.final_state, paused.interruptions[0], "Alice (Eng)")
        resumed = await run(state, config)

        assert resumed.output == direct.output
        assert resumed.final_state.messages == direct.final_state.messages
        assert resumed.final_state.turn_count == direct.final_state.turn_count

    @pytest.mark.asyncio
    async def test_resume_events(self):
        gateway = lookup_script()
        events = []
        config = config_for(gateway, contacts_agent(), on_event=events.append)

        paused = await run(create_run_state("assistant", "Find Alice"), config)
        requested = [e for e in events if isinstance(e, ClarificationRequested)]
        assert requested[0].interruption_id == "call_1:clarification:0"

        events.clear()
        await run(provide_clarification(paused.final_state, paused.interruptions[0], "Alice (Sales)"), config)

        start = events[0]
        assert isinstance(start, RunStart) and start.resuming
        provided = [e for e in events if isinstance(e, ClarificationProvided)]
        assert provided[0].selected == "Alice (Sales)"

    @pytest.mark.asyncio
    async def test_mid_batch_suspension(self):
        executed = []

        def add(a, b):
            executed.append((a, b))
            return a + b

        agent = contacts_agent(FunctionTool(add, name="add", parameters=PAIR_SCHEMA))
        gateway = ScriptedGateway()
        gateway.add_response("", [
            ("add", {"a": 1, "b": 1}),
            ("find_contact", {"name": "Alice"}),
            ("add", {"a": 2, "b": 2}),
        ])
        gateway.add_response("All done.")
        config = config_for(gateway, agent)

        paused = await run(create_run_state("assistant", "go"), config)

        assert paused.interruptions[0].id == "call_2:clarification:0"
        assert executed == [(1, 1)]
        assert [m.tool_call_id for m in paused.final_state.messages if m.role == MessageRole.TOOL] == ["call_1"]

        state = provide_clarification(paused.final_state, paused.interruptions[0], "Alice (Eng)")
        resumed = await run(state, config)

        assert resumed.completed
        assert executed == [(1, 1), (2, 2)]
        tool_ids = [m.tool_call_id for m in resumed.final_state.messages if m.role == MessageRole.TOOL]
        assert tool_ids == ["call_1", "call_2", "call_3"]
        assert gateway.call_count == 2

    @pytest.mark.asyncio
    async def test_replay_without_answer_suspends_again(self):
        gateway = lookup_script()
        config = config_for(gateway, contacts_agent())

        first = await run(create_run_state("assistant", "Find Alice"), config)
        second = await run(first.final_state, config)

        assert second.interrupted
        assert second.interruptions[0].id == first.interruptions[0].id
        assert second.final_state == first.final_state
        assert gateway.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self):
        paused = await run(create_run_state("assistant", "Find Alice"), config_for(lookup_script(), contacts_agent()))
        with pytest.raises(ValueError):
            provide_clarification(paused.final_state, paused.interruptions[0], "Bob")

    @pytest.mark.asyncio
    async def test_answer_for_other_run_rejected(self):
        paused = await run(create_run_state("assistant", "Find Alice"), config_for(lookup_script(), contacts_agent()))
        other = create_run_state("assistant", "Find Alice")
        with pytest.raises(ValueError):
            provide_clarification(other, paused.interruptions[0], "Alice (Eng)")


class TestElicitation:

    @staticmethod
    def booking_agent():
        def book_meeting(name, context):
            who = context.clarify(f"Which {name}?", ["Alice (Eng)", "Alice (Sales)"])
            when = context.ask_text(f"When should the meeting with {who} be?")
            return f"Booked {who} on {when}"

        return Agent(name="assistant", tools=[FunctionTool(book_meeting, name="book_meeting", parameters=NAME_SCHEMA)])

    @pytest.mark.asyncio
    async def test_clarify_then_elicit(self):
        gateway = ScriptedGateway()
        gateway.add_response("", [("book_meeting", {"name": "Alice"})])
        gateway.add_response("Meeting booked.")
        config = config_for(gateway, self.booking_agent())

        first = await run(create_run_state("assistant", "Book Alice"), config)
        state = provide_clarification(first.final_state, first.interruptions[0], "Alice (Sales)")

        second = await run(state, config)
        interruption = second.interruptions[0]
        assert isinstance(interruption, ElicitationInterruption)
        assert interruption.id == "call_1:elicitation:1"
        assert interruption.request.id == interruption.id
        assert second.final_state.pending_resolutions == {"call_1:clarification:0": "Alice (Sales)"}

        state = provide_elicitation(second.final_state, interruption, {"text": "Friday"})
        third = await run(state, config)

        assert third.completed
        assert third.final_state.messages[2].content == "Booked Alice (Sales) on Friday"
        assert third.final_state.pending_resolutions == {}
        assert gateway.call_count == 2

    @pytest.mark.asyncio
    async def test_each_answer_reported_once(self):
        gateway = ScriptedGateway()
        gateway.add_response("", [("book_meeting", {"name": "Alice"})])
        gateway.add_response("Meeting booked.")
        events = []
        config = config_for(gateway, self.booking_agent(), on_event=events.append)

        first = await run(create_run_state("assistant", "Book Alice"), config)
        second = await run(provide_clarification(first.final_state, first.interruptions[0], "Alice (Sales)"), config)
        events.clear()
        await run(provide_elicitation(second.final_state, second.interruptions[0], {"text": "Friday"}), config)

        assert [e for e in events if isinstance(e, ClarificationProvided)] == []
        provided = [e for e in events if isinstance(e, ElicitationProvided)]
        assert [e.interruption_id for e in provided] == ["call_1:elicitation:1"]

    @pytest.mark.asyncio
    async def test_decline_becomes_soft_failure(self):
        def ask(context):
            return context.confirm("Delete everything?")

        agent = Agent(name="assistant", tools=[FunctionTool(ask, name="ask")])
        gateway = ScriptedGateway()
        gateway.add_response("", [("ask", {})])
        gateway.add_response("Okay, nothing deleted.")
        config = config_for(gateway, agent)

        paused = await run(create_run_state("assistant", "clean up"), config)
        state = provide_elicitation(paused.final_state, paused.interruptions[0], {"action": "decline"})
        result = await run(state, config)

        assert result.completed
        payload = json.loads(result.final_state.messages[2].content)
        assert payload["status"] == "elicitation_declined"

    @pytest.mark.asyncio
    async def test_invalid_answer_rejected_before_resume(self):
        def ask(context):
            return context.contact_info()

        agent = Agent(name="assistant", tools=[FunctionTool(ask, name="ask")])
        gateway = ScriptedGateway()
        gateway.add_response("", [("ask", {})])
        paused = await run(create_run_state("assistant", "sign me up"), config_for(gateway, agent))

        with pytest.raises(ValueError):
            provide_elicitation(paused.final_state, paused.interruptions[0], {"name": "Ada", "email": "nope"})


class TestToolAuth:

    @pytest.mark.asyncio
    async def test_auth_round_trip(self):
        def list_repos(context):
            token = context.require_auth("github", "https://auth.example/github", ["repo"])
            return f"repos listed with {token}"

        agent = Agent(name="assistant", tools=[FunctionTool(list_repos, name="list_repos")])
        gateway = ScriptedGateway()
        gateway.add_response("", [("list_repos", {})])
        gateway.add_response("You have 3 repos.")
        config = config_for(gateway, agent)

        paused = await run(create_run_state("assistant", "my repos?"), config)
        interruption = paused.interruptions[0]
        assert isinstance(interruption, ToolAuthInterruption)
        assert interruption.authorization_url == "https://auth.example/github"

        result = await run(provide_auth(paused.final_state, interruption, "tok_abc"), config)
        assert result.final_state.messages[2].content == "repos listed with tok_abc"


class TestPersistence:

    @pytest.mark.asyncio
    async def test_resume_from_json(self):
        gateway = lookup_script()
        config = config_for(gateway, contacts_agent())
        paused = await run(create_run_state("assistant", "Find Alice"), config)

        data = json.loads(json.dumps(paused.to_dict()))
        state = RunState.from_dict(data["final_state"])
        interruption = Interruption.from_dict(data["interruptions"][0])

        result = await run(resolve(state, interruption, "Alice (Sales)"), config)

        assert result.completed
        assert result.final_state.messages[2].content == "Contact: Alice (Sales)"

    @pytest.mark.asyncio
    async def test_stale_resolutions_discarded(self, caplog):
        gateway = ScriptedGateway().add_response("hi")
        state = create_run_state("assistant", "hello").with_resolution("call_9:clarification:0", "x")

        with caplog.at_level(logging.WARNING, logger="flow.loops"):
            result = await run(state, config_for(gateway, contacts_agent()))

        assert result.completed
        assert result.final_state.pending_resolutions == {}
        assert "Discarding 1 resolutions" in caplog.text

    @pytest.mark.asyncio
    async def test_turn_budget_spans_resumes(self):
        gateway = lookup_script()
        config = config_for(gateway, contacts_agent(), max_turns=1)
        paused = await run(create_run_state("assistant", "Find Alice"), config)
        state = provide_clarification(paused.final_state, paused.interruptions[0], "Alice (Eng)")

        result = await run(state, config)

        assert result.error.kind == ErrorKind.MAX_TURNS_EXCEEDED
        assert result.final_state.turn_count == 1

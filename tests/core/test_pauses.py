"""
tests/core/test_pauses.py - Interruption Record Tests

Interruptions must be self-contained and survive a JSON round trip, since
a suspended run may be resumed in another process.
"""

import json

import pytest

from core.types import Message, ToolCall
from core.state import create_run_state
from core.pauses import (
    AuthChallenge,
    ClarificationInterruption,
    ClarificationOption,
    ElicitationInterruption,
    ElicitationRequest,
    Interruption,
    InterruptionKind,
    ToolAuthInterruption,
    coerce_options,
    make_interruption_id,
    split_interruption_id,
)


def _state():
    call = ToolCall("call_1", "lookup", {"name": "Alice"})
    return create_run_state("a", "who?", run_id="run_x").with_messages(Message.assistant("", [call])), call


class TestInterruptionIds:

    def test_format(self):
        assert make_interruption_id("call_1", InterruptionKind.CLARIFICATION, 0) == "call_1:clarification:0"

    def test_split(self):
        assert split_interruption_id("call_1:tool_auth:2") == ("call_1", InterruptionKind.TOOL_AUTH, 2)

    def test_split_keeps_colons_in_tool_call_id(self):
        tool_call_id, kind, ordinal = split_interruption_id("toolu:abc:elicitation:1")
        assert tool_call_id == "toolu:abc"
        assert kind == InterruptionKind.ELICITATION
        assert ordinal == 1

    def test_split_rejects_garbage(self):
        with pytest.raises(ValueError):
            split_interruption_id("not-an-id")


class TestOptions:

    def test_strings_become_id_and_label(self):
        options = coerce_options(["Alice (Eng)", "Alice (Sales)"])
        assert options[0] == ClarificationOption(id="Alice (Eng)", label="Alice (Eng)")

    def test_pairs_and_dicts(self):
        options = coerce_options([("u1", "Alice"), {"id": "u2", "label": "Bob"}])
        assert [o.id for o in options] == ["u1", "u2"]
        assert [o.label for o in options] == ["Alice", "Bob"]

    def test_empty_options_rejected(self):
        with pytest.raises(ValueError):
            coerce_options([])


class TestInterruptions:

    def test_clarification_round_trip(self):
        state, call = _state()
        interruption = ClarificationInterruption(
            id="call_1:clarification:0",
            tool_call=call,
            agent_name="a",
            state=state,
            max_turns=50,
            question="Which Alice?",
            options=coerce_options([("u1", "Alice (Eng)"), ("u2", "Alice (Sales)")]),
        )

        data = json.loads(json.dumps(interruption.to_dict()))
        restored = Interruption.from_dict(data)

        assert data["type"] == "clarification"
        assert data["clarification_id"] == "call_1:clarification:0"
        assert isinstance(restored, ClarificationInterruption)
        assert restored == interruption

    def test_find_option_by_id_then_label(self):
        state, call = _state()
        interruption = ClarificationInterruption(
            id="i", tool_call=call, agent_name="a", state=state, max_turns=5,
            question="?", options=coerce_options([("u1", "Alice (Eng)")]),
        )
        assert interruption.find_option("u1").label == "Alice (Eng)"
        assert interruption.find_option("Alice (Eng)").id == "u1"
        assert interruption.find_option("Bob") is None

    def test_elicitation_session_is_run(self):
        state, call = _state()
        request = ElicitationRequest(message="Date?", requested_schema={"type": "object"}, id="call_1:elicitation:0")
        interruption = ElicitationInterruption(
            id="call_1:elicitation:0", tool_call=call, agent_name="a", state=state,
            max_turns=5, request=request,
        )
        assert interruption.session_id == "run_x"

        restored = Interruption.from_dict(json.loads(json.dumps(interruption.to_dict())))
        assert restored.request == request

    def test_tool_auth_exposes_url(self):
        state, call = _state()
        interruption = ToolAuthInterruption(
            id="call_1:tool_auth:0", tool_call=call, agent_name="a", state=state, max_turns=5,
            challenge=AuthChallenge(auth_key="github", authorization_url="https://auth.example/go", scopes=("repo",)),
        )
        data = interruption.to_dict()
        assert data["tool_call_id"] == "call_1"
        assert data["authorization_url"] == "https://auth.example/go"

        restored = Interruption.from_dict(json.loads(json.dumps(data)))
        assert restored.challenge.scopes == ("repo",)
        assert restored.tool_call_id == "call_1"

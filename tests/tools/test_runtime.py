"""
tests/tools/test_runtime.py - ToolContext Tests

Suspension helpers must number their requests deterministically so a
replayed tool finds its earlier answers.
"""

import pytest

from core.types import ToolCall
from core.state import create_run_state
from core.pauses import ElicitationDeclined, InterruptionKind, ToolSuspended
from core.elicit import ElicitationResponse
from tool.runtime import ToolContext


def _context(resolutions=None, context=None):
    state = create_run_state("a", "go", context=context, run_id="run_1", trace_id="trace_1")
    for key, value in (resolutions or {}).items():
        state = state.with_resolution(key, value)
    return ToolContext(ToolCall("call_7", "tool", {}), "a", state)


class TestToolContext:

    def test_identifiers(self):
        ctx = _context(context={"user_id": "u1"})
        assert ctx.run_id == "run_1"
        assert ctx.trace_id == "trace_1"
        assert ctx.tool_call_id == "call_7"
        assert ctx.context == {"user_id": "u1"}

    def test_only_own_resolutions_visible(self):
        ctx = _context({"call_7:clarification:0": "x", "call_8:clarification:0": "y"})
        assert ctx.resolutions == {"call_7:clarification:0": "x"}

    def test_clarify_suspends_without_answer(self):
        with pytest.raises(ToolSuspended) as info:
            _context().clarify("Which?", ["a", "b"])
        signal = info.value
        assert signal.interruption_id == "call_7:clarification:0"
        assert signal.kind == InterruptionKind.CLARIFICATION
        assert [o.label for o in signal.payload.options] == ["a", "b"]

    def test_clarify_returns_answer(self):
        assert _context({"call_7:clarification:0": "b"}).clarify("Which?", ["a", "b"]) == "b"

    def test_ordinals_span_kinds(self):
        ctx = _context({"call_7:clarification:0": "a"})
        ctx.clarify("Which?", ["a", "b"])
        with pytest.raises(ToolSuspended) as info:
            ctx.ask_text("Why?")
        assert info.value.interruption_id == "call_7:elicitation:1"
        assert info.value.payload.id == "call_7:elicitation:1"

    def test_elicit_returns_content(self):
        answer = ElicitationResponse.accept({"text": "because"}).to_dict()
        assert _context({"call_7:elicitation:0": answer}).ask_text("Why?") == "because"

    def test_plain_content_counts_as_accept(self):
        assert _context({"call_7:elicitation:0": {"confirmed": True}}).confirm("Sure?") is True

    def test_decline_raises(self):
        ctx = _context({"call_7:elicitation:0": {"action": "decline"}})
        with pytest.raises(ElicitationDeclined) as info:
            ctx.confirm("Sure?")
        assert info.value.action == "decline"

    def test_invalid_answer_raises(self):
        ctx = _context({"call_7:elicitation:0": {"number": 0}})
        with pytest.raises(ValueError):
            ctx.ask_number("How many?", minimum=1)

    def test_nested_schema_rejected_before_suspending(self):
        schema = {"type": "object", "properties": {"inner": {"type": "object"}}}
        with pytest.raises(ValueError):
            _context().elicit("Form", schema)

    def test_choose_and_contact(self):
        ctx = _context({
            "call_7:elicitation:0": {"choice": "red"},
            "call_7:elicitation:1": {"name": "Ada", "email": "ada@example.com"},
        })
        assert ctx.choose("Color?", ["red", "blue"]) == "red"
        assert ctx.contact_info() == {"name": "Ada", "email": "ada@example.com", "phone": None}

    def test_require_auth(self):
        with pytest.raises(ToolSuspended) as info:
            _context().require_auth("github", "https://auth.example/go", ["repo"])
        assert info.value.kind == InterruptionKind.TOOL_AUTH
        assert info.value.payload.scopes == ("repo",)

        assert _context({"call_7:tool_auth:0": "token-123"}).require_auth("github") == "token-123"

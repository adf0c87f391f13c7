"""
core/events.py - Trace Events

Every transition of the turn loop is reported as one of the events below.
Events are purely observational: nothing in the engine reads them back.

The same ordered sequence is delivered in both modes:
- buffered: each event is handed to RunConfig.on_event as it occurs
- streaming: run_stream() yields the events one by one

Each event class has a fixed EventKind, so consumers can dispatch on
event.kind (see flow/emits.py) or on the class itself.

Rules:
- Events are frozen dataclasses
- to_dict() always includes "type", "run_id" and "trace_id"
"""

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Tuple
from enum import Enum

from .types import Message, ToolCall
from .proto import RunResult


class EventKind(str, Enum):
    RUN_START = "run_start"
    TURN_START = "turn_start"
    LLM_CALL_START = "llm_call_start"
    LLM_CALL_END = "llm_call_end"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_REQUESTS = "tool_requests"
    BEFORE_TOOL_EXECUTION = "before_tool_execution"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_END = "tool_call_end"
    TOOL_RESULTS_TO_LLM = "tool_results_to_llm"
    GUARDRAIL_CHECK = "guardrail_check"
    GUARDRAIL_VIOLATION = "guardrail_violation"
    HANDOFF = "handoff"
    HANDOFF_DENIED = "handoff_denied"
    CLARIFICATION_REQUESTED = "clarification_requested"
    CLARIFICATION_PROVIDED = "clarification_provided"
    ELICITATION_REQUESTED = "elicitation_requested"
    ELICITATION_PROVIDED = "elicitation_provided"
    AUTH_REQUESTED = "auth_requested"
    AUTH_PROVIDED = "auth_provided"
    OUTPUT_SCHEMA_ERROR = "output_schema_error"
    FINAL_OUTPUT = "final_output"
    TURN_END = "turn_end"
    RUN_END = "run_end"


def _plain(value: Any) -> Any:
    """Convert a field value into JSON-friendly data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class TraceEvent:
    kind: ClassVar[EventKind]

    run_id: str
    trace_id: str

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value}
        for f in fields(self):
            data[f.name] = _plain(getattr(self, f.name))
        return data


@dataclass(frozen=True)
class RunStart(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.RUN_START
    agent_name: str = ""
    turn_count: int = 0
    resuming: bool = False


@dataclass(frozen=True)
class TurnStart(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.TURN_START
    turn: int = 0
    agent_name: str = ""


@dataclass(frozen=True)
class LlmCallStart(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.LLM_CALL_START
    agent_name: str = ""
    model: Optional[str] = None
    message_count: int = 0


@dataclass(frozen=True)
class LlmCallEnd(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.LLM_CALL_END
    agent_name: str = ""
    message: Optional[Message] = None
    usage: Optional[Dict[str, int]] = None


@dataclass(frozen=True)
class AssistantMessage(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.ASSISTANT_MESSAGE
    agent_name: str = ""
    message: Optional[Message] = None


@dataclass(frozen=True)
class ToolRequests(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.TOOL_REQUESTS
    agent_name: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class BeforeToolExecution(TraceEvent):
    """Reports the argument interception point.

    original_arguments are what the model proposed; arguments are what the
    tool will actually receive.
    """
    kind: ClassVar[EventKind] = EventKind.BEFORE_TOOL_EXECUTION
    tool_call_id: str = ""
    tool_name: str = ""
    original_arguments: Optional[Dict[str, Any]] = None
    arguments: Optional[Dict[str, Any]] = None
    replaced: bool = False


@dataclass(frozen=True)
class ToolCallStart(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.TOOL_CALL_START
    tool_call_id: str = ""
    tool_name: str = ""
    arguments: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ToolCallEnd(TraceEvent):
    """status is "success" or one of the soft failure statuses."""
    kind: ClassVar[EventKind] = EventKind.TOOL_CALL_END
    tool_call_id: str = ""
    tool_name: str = ""
    status: str = "success"
    content: str = ""
    elapsed_ms: float = 0.0


@dataclass(frozen=True)
class ToolResultsToLlm(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.TOOL_RESULTS_TO_LLM
    results: Tuple[Message, ...] = ()


@dataclass(frozen=True)
class GuardrailCheck(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.GUARDRAIL_CHECK
    stage: str = "input"
    rule: str = ""
    is_valid: bool = True
    reason: Optional[str] = None


@dataclass(frozen=True)
class GuardrailViolation(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.GUARDRAIL_VIOLATION
    stage: str = "input"
    rule: str = ""
    reason: Optional[str] = None


@dataclass(frozen=True)
class HandoffEvent(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.HANDOFF
    from_agent: str = ""
    to_agent: str = ""


@dataclass(frozen=True)
class HandoffDenied(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.HANDOFF_DENIED
    from_agent: str = ""
    to_agent: str = ""
    reason: str = ""


@dataclass(frozen=True)
class ClarificationRequested(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.CLARIFICATION_REQUESTED
    interruption_id: str = ""
    tool_call_id: str = ""
    question: str = ""
    options: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class ClarificationProvided(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.CLARIFICATION_PROVIDED
    interruption_id: str = ""
    tool_call_id: str = ""
    selected: Any = None


@dataclass(frozen=True)
class ElicitationRequested(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.ELICITATION_REQUESTED
    interruption_id: str = ""
    tool_call_id: str = ""
    request: Any = None


@dataclass(frozen=True)
class ElicitationProvided(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.ELICITATION_PROVIDED
    interruption_id: str = ""
    tool_call_id: str = ""
    action: str = "accept"


@dataclass(frozen=True)
class AuthRequested(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.AUTH_REQUESTED
    interruption_id: str = ""
    tool_call_id: str = ""
    authorization_url: Optional[str] = None


@dataclass(frozen=True)
class AuthProvided(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.AUTH_PROVIDED
    interruption_id: str = ""
    tool_call_id: str = ""


@dataclass(frozen=True)
class OutputSchemaError(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.OUTPUT_SCHEMA_ERROR
    agent_name: str = ""
    detail: str = ""


@dataclass(frozen=True)
class FinalOutput(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.FINAL_OUTPUT
    agent_name: str = ""
    output: Any = None


@dataclass(frozen=True)
class TurnEnd(TraceEvent):
    kind: ClassVar[EventKind] = EventKind.TURN_END
    turn: int = 0
    agent_name: str = ""


@dataclass(frozen=True)
class RunEnd(TraceEvent):
    """Always the last event of a run; carries the result."""
    kind: ClassVar[EventKind] = EventKind.RUN_END
    result: Optional[RunResult] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind.value,
            "run_id": self.run_id,
            "trace_id": self.trace_id,
        }
        if self.result is not None:
            # final_state is omitted; it is in the result returned to the caller
            data["status"] = self.result.status.value
            data["turn_count"] = self.result.final_state.turn_count
        return data

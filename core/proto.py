"""
core/proto.py - Engine Protocol Schemas

This module defines what goes into and comes out of an engine call.

Key schemas:
- ModelResponse: What a model gateway returns for one completion
- ErrorKind / RunError: Hard failure taxonomy
- Completed / Errored / Interrupted: The three outcome tags
- RunResult: Outcome plus final state, with the caller-facing surface
- RunConfig: Per-run runtime configuration

Rules:
- Only depends on core/types.py, core/state.py and core/pauses.py
- Exactly one outcome tag is ever set on a RunResult
- Collaborator types (gateway, catalog, guardrails) are referenced lazily
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING, Union
from enum import Enum

from .types import Message
from .state import RunState
from .pauses import Interruption

if TYPE_CHECKING:
    from gate.bases import ModelGateway
    from tool.index import Catalog


@dataclass(frozen=True)
class ModelResponse:
    """Response from a model gateway.

    Attributes:
        message: Proposed assistant message, possibly carrying tool calls
        usage: Optional token usage reported by the backend
    """
    message: Message
    usage: Optional[Dict[str, int]] = None


class ErrorKind(str, Enum):
    """Hard failures. Each aborts the run with an Errored outcome."""
    AGENT_NOT_FOUND = "agent_not_found"
    MAX_TURNS_EXCEEDED = "max_turns_exceeded"
    MODEL_PROVIDER_ERROR = "model_provider_error"
    GUARDRAIL_VIOLATION = "guardrail_violation"
    GUARDRAIL_EVALUATOR_FAILURE = "guardrail_evaluator_failure"
    INVALID_OUTPUT_SCHEMA = "invalid_output_schema"
    HANDOFF_ERROR = "handoff_error"


@dataclass(frozen=True)
class RunError:
    kind: ErrorKind
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "detail": self.detail}


class RunStatus(str, Enum):
    COMPLETED = "completed"
    ERROR = "error"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class Completed:
    """The run produced a final output.

    output is the parsed JSON object when the agent declares an
    output_schema, otherwise the assistant's text.
    """
    output: Any
    status: RunStatus = field(default=RunStatus.COMPLETED, init=False)


@dataclass(frozen=True)
class Errored:
    error: RunError
    status: RunStatus = field(default=RunStatus.ERROR, init=False)


@dataclass(frozen=True)
class Interrupted:
    """The run is suspended awaiting a resolution (exactly one interruption)."""
    interruptions: List[Interruption]
    status: RunStatus = field(default=RunStatus.INTERRUPTED, init=False)


Outcome = Union[Completed, Errored, Interrupted]


@dataclass(frozen=True)
class RunResult:
    """What the engine returns to its caller.

    Attributes:
        outcome: Exactly one of Completed, Errored, Interrupted
        final_state: State to persist; pass it back in to continue the run
    """
    outcome: Outcome
    final_state: RunState

    @property
    def status(self) -> RunStatus:
        return self.outcome.status

    @property
    def completed(self) -> bool:
        return isinstance(self.outcome, Completed)

    @property
    def interrupted(self) -> bool:
        return isinstance(self.outcome, Interrupted)

    @property
    def output(self) -> Any:
        return self.outcome.output if isinstance(self.outcome, Completed) else None

    @property
    def error(self) -> Optional[RunError]:
        return self.outcome.error if isinstance(self.outcome, Errored) else None

    @property
    def interruptions(self) -> List[Interruption]:
        if isinstance(self.outcome, Interrupted):
            return list(self.outcome.interruptions)
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Caller-facing surface: status, one of output/error/interruptions, final_state."""
        data: Dict[str, Any] = {"status": self.status.value}
        if isinstance(self.outcome, Completed):
            data["output"] = self.outcome.output
        elif isinstance(self.outcome, Errored):
            data["error"] = self.outcome.error.to_dict()
        else:
            data["interruptions"] = [i.to_dict() for i in self.outcome.interruptions]
        data["final_state"] = self.final_state.to_dict()
        return data


# Hook signature: (tool_call, agent, state) -> replacement arguments or None
BeforeToolHook = Callable[..., Optional[Dict[str, Any]]]


@dataclass
class RunConfig:
    """Runtime configuration for one engine call.

    Attributes:
        catalog: Agent catalogue (read-only for the engine)
        gateway: Model backend
        max_turns: Turn budget across the whole logical conversation
        model_override: Model name that overrides every agent's model_config
        on_event: Callback receiving each trace event in buffered mode
        before_tool_execution: Hook that may replace a tool call's arguments
        input_guardrails: Extra input checks (sync or async callables)
        output_guardrails: Extra output checks (sync or async callables)
        guardrail_gateway: Backend used for guardrail evaluation (defaults to gateway)
        default_fast_model: Evaluator model when the agent does not name one
        handoff_consumes_turn: Whether a handoff turn counts against max_turns
        guardrail_cache: Cache guardrail verdicts across calls
    """
    catalog: "Catalog"
    gateway: "ModelGateway"
    max_turns: int = 50
    model_override: Optional[str] = None
    on_event: Optional[Callable[[Any], None]] = None
    before_tool_execution: Optional[BeforeToolHook] = None
    input_guardrails: List[Callable[..., Any]] = field(default_factory=list)
    output_guardrails: List[Callable[..., Any]] = field(default_factory=list)
    guardrail_gateway: Optional["ModelGateway"] = None
    default_fast_model: Optional[str] = None
    handoff_consumes_turn: bool = True
    guardrail_cache: bool = True

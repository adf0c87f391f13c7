"""
core/state.py - Run State

This module defines the RunState value that is the sole input and output
currency of every engine call.

Key pieces:
- RunState: Immutable snapshot of one logical conversation
- generate_run_id / generate_trace_id: Identifier factories
- create_run_state: Convenience constructor for a fresh conversation

Rules:
- Only depends on core/types.py
- RunState is never mutated; every transition returns a new value
- messages only ever grow (append-only causal history)
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
import uuid
import time

from .types import Message, MessageRole, ToolCall


def generate_run_id() -> str:
    """Generate a unique run ID for traceability.

    Format: run_{timestamp}_{uuid_short}
    This allows grep-ing logs by run_id to trace execution.

    Returns:
        Unique run identifier
    """
    timestamp = int(time.time())
    short_uuid = str(uuid.uuid4())[:8]
    return f"run_{timestamp}_{short_uuid}"


def generate_trace_id() -> str:
    """Generate a unique trace ID.

    Returns:
        Unique trace identifier
    """
    return f"trace_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class RunState:
    """Snapshot of a conversation between engine calls.

    Attributes:
        run_id: Identifier of the logical run (stable across resumptions)
        trace_id: Identifier shared by related runs (sub-agents, pipelines)
        messages: Full conversation history, oldest first
        current_agent_name: Name of the active agent in the catalogue
        context: Caller-defined context handed to every tool
        turn_count: Completed turns so far; never decreases
        pending_resolutions: Answers for outstanding interruptions, keyed by interruption id
    """
    run_id: str
    trace_id: str
    messages: Tuple[Message, ...]
    current_agent_name: str
    context: Any = None
    turn_count: int = 0
    pending_resolutions: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.messages, tuple):
            object.__setattr__(self, "messages", tuple(self.messages))

    def with_messages(self, *messages: Message) -> "RunState":
        """Return a copy with messages appended."""
        return replace(self, messages=self.messages + tuple(messages))

    def with_resolution(self, interruption_id: str, value: Any) -> "RunState":
        """Return a copy with one more pending resolution."""
        resolutions = dict(self.pending_resolutions)
        resolutions[interruption_id] = value
        return replace(self, pending_resolutions=resolutions)

    @property
    def last_user_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == MessageRole.USER:
                return message
        return None

    def unanswered_tool_calls(self) -> List[ToolCall]:
        """Tool calls of the trailing assistant message that have no result yet.

        A suspended batch leaves the assistant message followed only by the
        results of the calls dispatched before the suspension, so the
        unanswered calls are exactly the paused call and the ones after it.
        """
        for index in range(len(self.messages) - 1, -1, -1):
            message = self.messages[index]
            if message.role == MessageRole.TOOL:
                continue
            if message.role != MessageRole.ASSISTANT or not message.tool_calls:
                return []
            answered = {
                m.tool_call_id for m in self.messages[index + 1:]
                if m.role == MessageRole.TOOL
            }
            return [tc for tc in message.tool_calls if tc.id not in answered]
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "trace_id": self.trace_id,
            "messages": [m.to_dict() for m in self.messages],
            "current_agent_name": self.current_agent_name,
            "context": self.context,
            "turn_count": self.turn_count,
            "pending_resolutions": dict(self.pending_resolutions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunState":
        return cls(
            run_id=data["run_id"],
            trace_id=data["trace_id"],
            messages=tuple(Message.from_dict(m) for m in data.get("messages", [])),
            current_agent_name=data["current_agent_name"],
            context=data.get("context"),
            turn_count=data.get("turn_count", 0),
            pending_resolutions=dict(data.get("pending_resolutions") or {}),
        )


def create_run_state(
    agent_name: str,
    user_message: Optional[str] = None,
    context: Any = None,
    run_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> RunState:
    """Create the initial state of a new conversation.

    Args:
        agent_name: Agent that handles the first turn
        user_message: Optional first user message
        context: Caller-defined context passed to tools
        run_id: Optional explicit run id
        trace_id: Optional explicit trace id

    Returns:
        Fresh RunState with turn_count 0
    """
    messages: Tuple[Message, ...] = ()
    if user_message is not None:
        messages = (Message.user(user_message),)
    return RunState(
        run_id=run_id or generate_run_id(),
        trace_id=trace_id or generate_trace_id(),
        messages=messages,
        current_agent_name=agent_name,
        context=context,
    )

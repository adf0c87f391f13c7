"""
flow/pause.py - Interruption Packaging and Resolution

This module sits on both sides of a suspension.

Packaging (engine side):
- package_interruption(): ToolSuspended signal -> Interruption record
- requested_event(): the trace event announcing the interruption

Resolution (caller side):
- provide_clarification(), provide_elicitation(), provide_auth(), resolve():
  return a new RunState whose pending_resolutions answer an interruption
- load_resolutions() / record_interruptions(): bridge to a ResolutionStore

Typical round trip:
    result = await run(state, config)
    if result.interrupted:
        interruption = result.interruptions[0]
        state = provide_clarification(result.final_state, interruption, "Alice (Eng)")
        result = await run(state, config)

Rules:
- Helpers never mutate the state they receive
- Invalid answers raise ValueError before the run is re-entered
"""

import logging
from typing import Any, Optional, TYPE_CHECKING

from core.state import RunState
from core.types import ToolCall
from core.pauses import (
    AuthChallenge,
    ClarificationInterruption,
    ClarificationRequest,
    ElicitationInterruption,
    ElicitationRequest,
    Interruption,
    InterruptionKind,
    ToolAuthInterruption,
    ToolSuspended,
)
from core.elicit import ElicitationResponse, validate_elicitation_response
from core.events import (
    AuthProvided,
    AuthRequested,
    ClarificationProvided,
    ClarificationRequested,
    ElicitationProvided,
    ElicitationRequested,
    TraceEvent,
)
from core.proto import RunResult

if TYPE_CHECKING:
    from store.bases import ResolutionStore

logger = logging.getLogger(__name__)


def package_interruption(
    signal: ToolSuspended,
    tool_call: ToolCall,
    agent_name: str,
    state: RunState,
    max_turns: int,
) -> Interruption:
    """Wrap a suspension signal into a self-contained, resumable record.

    Args:
        signal: The ToolSuspended raised by the tool
        tool_call: The call that was paused
        agent_name: Agent owning the tool
        state: State immediately before the paused call
        max_turns: Turn budget of the run

    Returns:
        Interruption variant matching the signal's kind
    """
    common = {
        "id": signal.interruption_id,
        "tool_call": tool_call,
        "agent_name": agent_name,
        "state": state,
        "max_turns": max_turns,
    }
    payload = signal.payload
    if signal.kind == InterruptionKind.CLARIFICATION:
        request: ClarificationRequest = payload
        return ClarificationInterruption(
            question=request.question,
            options=request.options,
            context=request.context,
            **common,
        )
    if signal.kind == InterruptionKind.ELICITATION:
        elicitation: ElicitationRequest = payload
        return ElicitationInterruption(request=elicitation, **common)
    challenge: AuthChallenge = payload
    return ToolAuthInterruption(challenge=challenge, **common)


def requested_event(interruption: Interruption) -> TraceEvent:
    """Trace event announcing a new interruption."""
    ids = {
        "run_id": interruption.state.run_id,
        "trace_id": interruption.state.trace_id,
        "interruption_id": interruption.id,
        "tool_call_id": interruption.tool_call_id,
    }
    if isinstance(interruption, ClarificationInterruption):
        return ClarificationRequested(
            question=interruption.question,
            options=interruption.options,
            **ids,
        )
    if isinstance(interruption, ElicitationInterruption):
        return ElicitationRequested(request=interruption.request, **ids)
    return AuthRequested(authorization_url=interruption.authorization_url, **ids)


def provided_event(state: RunState, interruption_id: str, kind: InterruptionKind, value: Any) -> TraceEvent:
    """Trace event reporting that a resolution is being applied."""
    tool_call_id = interruption_id.rsplit(":", 2)[0]
    ids = {
        "run_id": state.run_id,
        "trace_id": state.trace_id,
        "interruption_id": interruption_id,
        "tool_call_id": tool_call_id,
    }
    if kind == InterruptionKind.CLARIFICATION:
        return ClarificationProvided(selected=value, **ids)
    if kind == InterruptionKind.ELICITATION:
        try:
            action = ElicitationResponse.from_value(value).action.value
        except ValueError:
            action = "invalid"
        return ElicitationProvided(action=action, **ids)
    return AuthProvided(**ids)


# ---------------------------------------------------------------------------
# Caller-side resolution helpers
# ---------------------------------------------------------------------------

def _check_run(state: RunState, interruption: Interruption) -> None:
    if state.run_id != interruption.run_id:
        raise ValueError(
            f"Interruption {interruption.id} belongs to run {interruption.run_id}, "
            f"not {state.run_id}"
        )


def provide_clarification(
    state: RunState,
    interruption: ClarificationInterruption,
    selected: str,
) -> RunState:
    """Answer a clarification with an option id or label.

    Returns:
        New state with the selected option id pending

    Raises:
        ValueError: If selected matches no option
    """
    _check_run(state, interruption)
    option = interruption.find_option(selected)
    if option is None:
        valid = [o.id for o in interruption.options]
        raise ValueError(f"Unknown option '{selected}' for {interruption.id}; expected one of {valid}")
    return state.with_resolution(interruption.id, option.id)


def provide_elicitation(
    state: RunState,
    interruption: ElicitationInterruption,
    response: Any,
) -> RunState:
    """Answer an elicitation.

    Args:
        response: ElicitationResponse, {"action": ..., "content": ...} or plain content (accepted)

    Raises:
        ValueError: If accepted content does not satisfy the requested schema
    """
    _check_run(state, interruption)
    response = ElicitationResponse.from_value(response)
    if interruption.request is not None:
        validate_elicitation_response(interruption.request.requested_schema, response)
    return state.with_resolution(interruption.id, response.to_dict())


def provide_auth(state: RunState, interruption: ToolAuthInterruption, value: Any) -> RunState:
    """Answer an authorization challenge with whatever the tool expects (token, callback data)."""
    _check_run(state, interruption)
    return state.with_resolution(interruption.id, value)


def resolve(state: RunState, interruption: Interruption, value: Any) -> RunState:
    """Answer any interruption, dispatching on its kind."""
    if isinstance(interruption, ClarificationInterruption):
        return provide_clarification(state, interruption, value)
    if isinstance(interruption, ElicitationInterruption):
        return provide_elicitation(state, interruption, value)
    return provide_auth(state, interruption, value)


# ---------------------------------------------------------------------------
# ResolutionStore bridge
# ---------------------------------------------------------------------------

async def record_interruptions(result: RunResult, store: "ResolutionStore") -> int:
    """Register the interruptions of an interrupted result with a store.

    Returns:
        Number of interruptions recorded
    """
    for interruption in result.interruptions:
        await store.add_pending(interruption)
        logger.info(f"Recorded pending {interruption.kind.value} {interruption.id}")
    return len(result.interruptions)


async def load_resolutions(
    state: RunState,
    store: "ResolutionStore",
    run_id: Optional[str] = None,
) -> RunState:
    """Merge the answers submitted to a store into a state before resuming."""
    resolutions = await store.resolutions_for(run_id or state.run_id)
    for interruption_id, value in resolutions.items():
        state = state.with_resolution(interruption_id, value)
    return state

"""
flow/loops.py - Turn Loop

This is the engine: the state machine that drives a conversation forward.

Per turn:
1. Stop with MAX_TURNS_EXCEEDED once turn_count reaches max_turns
2. Resolve the active agent (AGENT_NOT_FOUND if missing)
3. If the trailing assistant message has unanswered tool calls, this is a
   resumption: re-dispatch the paused call (its resolution is now in
   pending_resolutions) and the calls after it, without calling the model
4. Otherwise check the input guardrail against a fresh user message
5. Call the model (MODEL_PROVIDER_ERROR on any fault, never retried)
6. No tool calls: output guardrail, output schema, append, Completed
7. Tool calls: append the assistant message, dispatch each call in order.
   The first suspension stops the batch and returns Interrupted. Otherwise
   append the results, count the turn, loop

Both delivery modes share one source of truth: stream() is an async
generator of trace events ending with RunEnd (which carries the
RunResult). run() drains that same generator, hands each event to
RunConfig.on_event and returns the result. Abandoning stream() halts the
run at the next await point; a tool already running completes first.

Rules:
- The loop never raises for hard failures; they become Errored outcomes
- State is never mutated; messages only grow
- Tool calls within a turn are dispatched strictly sequentially
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, List, Optional

from jsonschema import validate, ValidationError, SchemaError

from core.types import Agent, Message, MessageRole, ToolCall
from core.state import RunState
from core.proto import (
    Completed,
    ErrorKind,
    Errored,
    Interrupted,
    ModelResponse,
    Outcome,
    RunConfig,
    RunError,
    RunResult,
)
from core.pauses import ToolSuspended, split_interruption_id
from core.events import (
    AssistantMessage,
    FinalOutput,
    GuardrailCheck,
    GuardrailViolation,
    HandoffDenied,
    HandoffEvent,
    LlmCallEnd,
    LlmCallStart,
    OutputSchemaError,
    RunEnd,
    RunStart,
    ToolRequests,
    ToolResultsToLlm,
    TraceEvent,
    TurnEnd,
    TurnStart,
)
from core.trace import TraceLogger
from gate.bases import build_messages, resolve_model
from tool.dispatch import Dispatcher, ToolOutcome
from tool.handoff import Handoff
from flow.emits import safe_emit
from flow.guard import GuardrailEvaluatorError, build_evaluator, collect_checks
from flow.pause import package_interruption, provided_event, requested_event

logger = logging.getLogger(__name__)


@dataclass
class _Step:
    """End marker of a sub-step. result is set when the run must stop."""
    state: RunState
    result: Optional[Outcome] = None
    outcomes: List[ToolOutcome] = field(default_factory=list)


def _error(state: RunState, kind: ErrorKind, detail: str) -> _Step:
    return _Step(state, Errored(RunError(kind, detail)))


def _ids(state: RunState) -> dict:
    return {"run_id": state.run_id, "trace_id": state.trace_id}


class AgentLoop:
    """Turn loop orchestrator for one RunConfig.

    The loop holds no per-run state between calls, so one instance can
    drive many runs concurrently.
    """

    def __init__(self, config: RunConfig):
        self.config = config
        self.evaluator = build_evaluator(config)

    async def run(self, state: RunState) -> RunResult:
        """Run until Completed, Errored or Interrupted (buffered mode).

        Args:
            state: Conversation state, possibly carrying pending_resolutions

        Returns:
            RunResult with the outcome and the state to persist
        """
        result: Optional[RunResult] = None
        async for event in self.stream(state):
            safe_emit(self.config.on_event, event)
            if isinstance(event, RunEnd):
                result = event.result
        return result

    async def stream(self, state: RunState) -> AsyncIterator[TraceEvent]:
        """Run and yield every trace event (streaming mode).

        The last event is RunEnd, whose result is the RunResult.
        """
        tracer = TraceLogger(state.run_id)
        dispatcher = Dispatcher(self.config, tracer)
        resuming = bool(state.pending_resolutions) or bool(state.unanswered_tool_calls())
        logger.info(
            f"[run_id={state.run_id}] START agent={state.current_agent_name} "
            f"turn_count={state.turn_count} resuming={resuming}"
        )
        yield RunStart(
            agent_name=state.current_agent_name,
            turn_count=state.turn_count,
            resuming=resuming,
            **_ids(state),
        )

        outcome: Optional[Outcome] = None
        while outcome is None:
            step: Optional[_Step] = None
            async for item in self._turn(state, dispatcher, tracer):
                if isinstance(item, _Step):
                    step = item
                else:
                    yield item
            state = step.state
            outcome = step.result

        result = RunResult(outcome=outcome, final_state=state)
        error = result.error
        tracer.log_end(result.status.value, state.turn_count, error.detail if error else None)
        yield RunEnd(result=result, **_ids(state))

    # ------------------------------------------------------------------
    # One turn
    # ------------------------------------------------------------------

    async def _turn(self, state: RunState, dispatcher: Dispatcher, tracer: TraceLogger):
        config = self.config
        if state.turn_count >= config.max_turns:
            yield _error(state, ErrorKind.MAX_TURNS_EXCEEDED,
                         f"Maximum turns ({config.max_turns}) exceeded")
            return

        agent = config.catalog.get(state.current_agent_name)
        if agent is None:
            yield _error(state, ErrorKind.AGENT_NOT_FOUND,
                         f"Agent '{state.current_agent_name}' not found")
            return

        turn = state.turn_count + 1
        pending = state.unanswered_tool_calls()
        if not pending and state.pending_resolutions:
            logger.warning(
                f"[run_id={state.run_id}] Discarding {len(state.pending_resolutions)} "
                f"resolutions with no suspended tool call"
            )
            state = replace(state, pending_resolutions={})

        tracer.log_turn(turn, config.max_turns, agent.name)
        yield TurnStart(turn=turn, agent_name=agent.name, **_ids(state))

        if pending:
            calls = pending
            # Earlier ordinals of a call were reported by the resume that supplied them
            latest = {}
            for interruption_id in state.pending_resolutions:
                tool_call_id, kind, ordinal = split_interruption_id(interruption_id)
                if tool_call_id in latest and latest[tool_call_id][2] > ordinal:
                    continue
                latest[tool_call_id] = (interruption_id, kind, ordinal)
            for tool_call in pending:
                if tool_call.id not in latest:
                    continue
                interruption_id, kind, _ = latest[tool_call.id]
                tracer.log_resume(tool_call.id, interruption_id)
                yield provided_event(state, interruption_id, kind, state.pending_resolutions[interruption_id])
        else:
            last = state.messages[-1] if state.messages else None
            if last is not None and last.role == MessageRole.USER:
                step = None
                async for item in self._guard("input", last.content, state, agent, tracer):
                    if isinstance(item, _Step):
                        step = item
                    else:
                        yield item
                if step.result is not None:
                    yield step
                    return

            message: Optional[Message] = None
            async for item in self._call_model(state, agent):
                if isinstance(item, _Step):
                    yield item
                    return
                if isinstance(item, Message):
                    message = item
                else:
                    yield item

            if not message.tool_calls:
                async for item in self._complete(state, agent, message, turn, tracer):
                    yield item
                return

            state = state.with_messages(message)
            yield ToolRequests(agent_name=agent.name, tool_calls=message.tool_calls, **_ids(state))
            calls = list(message.tool_calls)

        batch: Optional[_Step] = None
        async for item in self._dispatch_batch(state, agent, calls, dispatcher, tracer):
            if isinstance(item, _Step):
                batch = item
            else:
                yield item
        if batch.result is not None:
            yield batch
            return

        # The batch is done: every answer it consumed is spent
        state = replace(batch.state, pending_resolutions={})

        handoff = next((o.value for o in batch.outcomes if isinstance(o.value, Handoff)), None)
        counts_turn = True
        if handoff is not None:
            if handoff.target not in agent.handoffs:
                reason = f"Agent {agent.name} cannot handoff to {handoff.target}"
                tracer.log_handoff(agent.name, handoff.target, allowed=False)
                yield HandoffDenied(from_agent=agent.name, to_agent=handoff.target,
                                    reason=reason, **_ids(state))
                state = replace(state, turn_count=turn)
                yield TurnEnd(turn=turn, agent_name=agent.name, **_ids(state))
                yield _error(state, ErrorKind.HANDOFF_ERROR, reason)
                return
            tracer.log_handoff(agent.name, handoff.target)
            yield HandoffEvent(from_agent=agent.name, to_agent=handoff.target, **_ids(state))
            state = replace(state, current_agent_name=handoff.target)
            counts_turn = config.handoff_consumes_turn

        if counts_turn:
            state = replace(state, turn_count=turn)
        yield TurnEnd(turn=turn, agent_name=agent.name, **_ids(state))
        yield _Step(state)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _call_model(self, state: RunState, agent: Agent):
        """Yields events, then the assistant Message (or an error _Step)."""
        gateway = self.config.gateway
        model = resolve_model(agent, self.config, gateway.model)
        try:
            prompt = build_messages(state, agent)
        except Exception as e:
            logger.error(f"[run_id={state.run_id}] Instructions for {agent.name} failed: {e}", exc_info=True)
            yield _error(state, ErrorKind.MODEL_PROVIDER_ERROR,
                         f"Instructions for agent '{agent.name}' failed: {str(e) or type(e).__name__}")
            return

        yield LlmCallStart(agent_name=agent.name, model=model, message_count=len(prompt), **_ids(state))
        try:
            response = await gateway.complete(state, agent, self.config)
        except Exception as e:
            logger.error(f"[run_id={state.run_id}] Model call failed: {e}", exc_info=True)
            yield _error(state, ErrorKind.MODEL_PROVIDER_ERROR, str(e) or type(e).__name__)
            return

        if (
            not isinstance(response, ModelResponse)
            or response.message.role != MessageRole.ASSISTANT
            or not isinstance(response.message.content, str)
        ):
            logger.error(f"[run_id={state.run_id}] Malformed model response: {response!r}")
            yield _error(state, ErrorKind.MODEL_PROVIDER_ERROR, "Malformed model response")
            return

        message = response.message
        yield LlmCallEnd(agent_name=agent.name, message=message, usage=response.usage, **_ids(state))
        yield AssistantMessage(agent_name=agent.name, message=message, **_ids(state))
        yield message

    async def _guard(self, stage: str, content: str, state: RunState, agent: Agent, tracer: TraceLogger):
        for rule, check in collect_checks(stage, agent, self.config, self.evaluator):
            try:
                verdict = await check(content)
            except GuardrailEvaluatorError as e:
                tracer.log_guardrail(stage, False, str(e))
                yield _error(state, ErrorKind.GUARDRAIL_EVALUATOR_FAILURE, f"{rule}: {e}")
                return

            tracer.log_guardrail(stage, verdict.is_valid, verdict.reason)
            yield GuardrailCheck(stage=stage, rule=rule, is_valid=verdict.is_valid,
                                 reason=verdict.reason, **_ids(state))
            if not verdict.is_valid:
                yield GuardrailViolation(stage=stage, rule=rule, reason=verdict.reason, **_ids(state))
                yield _error(state, ErrorKind.GUARDRAIL_VIOLATION,
                             f"{stage} guardrail '{rule}' violated: {verdict.reason}")
                return
        yield _Step(state)

    async def _complete(self, state: RunState, agent: Agent, message: Message, turn: int, tracer: TraceLogger):
        step = None
        async for item in self._guard("output", message.content, state, agent, tracer):
            if isinstance(item, _Step):
                step = item
            else:
                yield item
        if step.result is not None:
            yield step
            return

        output: Any = message.content
        if agent.output_schema is not None:
            detail = None
            try:
                output = json.loads(message.content)
                validate(instance=output, schema=agent.output_schema)
            except ValueError as e:
                detail = f"Output is not valid JSON: {e}"
            except (ValidationError, SchemaError) as e:
                detail = f"Output does not match schema: {e.message}"
            if detail is not None:
                logger.warning(f"[run_id={state.run_id}] {detail}")
                yield OutputSchemaError(agent_name=agent.name, detail=detail, **_ids(state))
                yield _error(state, ErrorKind.INVALID_OUTPUT_SCHEMA, detail)
                return

        state = replace(state.with_messages(message), turn_count=turn)
        yield FinalOutput(agent_name=agent.name, output=output, **_ids(state))
        yield TurnEnd(turn=turn, agent_name=agent.name, **_ids(state))
        yield _Step(state, Completed(output))

    async def _dispatch_batch(
        self,
        state: RunState,
        agent: Agent,
        calls: List[ToolCall],
        dispatcher: Dispatcher,
        tracer: TraceLogger,
    ):
        outcomes: List[ToolOutcome] = []
        results: List[Message] = []
        for tool_call in calls:
            outcome: Optional[ToolOutcome] = None
            try:
                async for item in dispatcher.dispatch(tool_call, agent, state):
                    if isinstance(item, ToolOutcome):
                        outcome = item
                    else:
                        yield item
            except ToolSuspended as signal:
                interruption = package_interruption(
                    signal, tool_call, agent.name, state, self.config.max_turns
                )
                tracer.log_suspend(tool_call, signal.kind.value, signal.interruption_id)
                yield requested_event(interruption)
                yield _Step(state, Interrupted([interruption]))
                return

            result_message = outcome.to_message()
            state = state.with_messages(result_message)
            results.append(result_message)
            outcomes.append(outcome)

        yield ToolResultsToLlm(results=tuple(results), **_ids(state))
        yield _Step(state, outcomes=outcomes)


async def run(state: RunState, config: RunConfig) -> RunResult:
    """Run (or resume) a conversation in buffered mode.

    Resuming is the same call: pass the interrupted final_state with the
    answers placed in pending_resolutions (see flow/pause.py).
    """
    return await AgentLoop(config).run(state)


def run_stream(state: RunState, config: RunConfig) -> AsyncIterator[TraceEvent]:
    """Run (or resume) a conversation in streaming mode.

    Events are produced lazily as the caller iterates; RunConfig.on_event
    is not called in this mode.
    """
    return AgentLoop(config).stream(state)

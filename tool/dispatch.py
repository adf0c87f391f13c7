"""
tool/dispatch.py - Tool Dispatcher

This module resolves a requested tool by name and invokes it.

Responsibilities:
- Exact-name lookup against the active agent's tools
- Offer the before_tool_execution hook a chance to replace arguments
- Validate arguments against the tool's schema
- Convert errors to soft-failure tool results
- Report every step as trace events

Critical: ordinary tool errors never propagate. They become a tool-result
message the model can react to. The single exception is ToolSuspended,
which passes through unchanged so the turn loop can interrupt the run.

dispatch() is an async generator: it yields trace events as they happen
and finally one ToolOutcome.

Soft failure content (JSON):
    {"status": "tool_not_found" | "validation_error" | "execution_error"
               | "elicitation_declined",
     "message": "...", "tool_name": "..."}
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Union

from core.types import Agent, Message, ToolCall
from core.state import RunState
from core.proto import RunConfig
from core.pauses import ElicitationDeclined, ToolSuspended
from core.events import BeforeToolExecution, ToolCallEnd, ToolCallStart, TraceEvent
from core.trace import TraceLogger
from .runtime import ToolContext

logger = logging.getLogger(__name__)


SUCCESS = "success"
TOOL_NOT_FOUND = "tool_not_found"
VALIDATION_ERROR = "validation_error"
EXECUTION_ERROR = "execution_error"
ELICITATION_DECLINED = "elicitation_declined"


@dataclass(frozen=True)
class ToolOutcome:
    """Result of dispatching one tool call.

    Attributes:
        tool_call: The call that was dispatched
        status: "success" or a soft failure status
        content: Text fed back to the model
        value: Raw return value of the tool (None on failure)
    """
    tool_call: ToolCall
    status: str
    content: str
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    def to_message(self) -> Message:
        return Message.tool(self.tool_call.id, self.content)


def format_result(value: Any) -> str:
    """Stringify a tool's return value for the model."""
    if isinstance(value, str):
        return value
    if hasattr(value, "to_dict"):
        return json.dumps(value.to_dict())
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def soft_failure(tool_call: ToolCall, status: str, message: str) -> ToolOutcome:
    content = json.dumps({
        "status": status,
        "message": message,
        "tool_name": tool_call.name,
    })
    return ToolOutcome(tool_call=tool_call, status=status, content=content)


class Dispatcher:
    """Runs tool calls for one run, strictly one at a time."""

    def __init__(self, config: RunConfig, tracer: TraceLogger):
        self.config = config
        self.tracer = tracer

    async def dispatch(
        self,
        tool_call: ToolCall,
        agent: Agent,
        state: RunState,
    ) -> AsyncIterator[Union[TraceEvent, ToolOutcome]]:
        """Dispatch one tool call.

        Args:
            tool_call: Call proposed by the model
            agent: Active agent
            state: State as it stands immediately before this call

        Yields:
            Trace events, then exactly one ToolOutcome

        Raises:
            ToolSuspended: The tool needs a human resolution
        """
        ids = {"run_id": state.run_id, "trace_id": state.trace_id}
        tool = agent.find_tool(tool_call.name)

        if tool is None:
            yield ToolCallStart(tool_call_id=tool_call.id, tool_name=tool_call.name,
                                arguments=tool_call.arguments, **ids)
            self.tracer.log_tool_call(tool_call)
            available = ", ".join(agent.tool_names) or "none"
            outcome = soft_failure(
                tool_call, TOOL_NOT_FOUND,
                f"Tool '{tool_call.name}' not found. Available tools: {available}",
            )
            yield self._finish(outcome, 0.0, ids)
            yield outcome
            return

        arguments = dict(tool_call.arguments)
        hook_error: Optional[str] = None
        replaced = False
        if self.config.before_tool_execution is not None:
            try:
                new_arguments = self.config.before_tool_execution(tool_call, agent, state)
            except Exception as e:
                logger.error(f"before_tool_execution hook failed for {tool_call.name}: {e}", exc_info=True)
                hook_error = f"before_tool_execution hook failed: {e}"
            else:
                if new_arguments is not None:
                    arguments = dict(new_arguments)
                    replaced = True

        yield BeforeToolExecution(
            tool_call_id=tool_call.id,
            tool_name=tool_call.name,
            original_arguments=dict(tool_call.arguments),
            arguments=arguments,
            replaced=replaced,
            **ids,
        )
        yield ToolCallStart(tool_call_id=tool_call.id, tool_name=tool_call.name,
                            arguments=arguments, **ids)
        self.tracer.log_tool_call(tool_call, arguments)

        if hook_error is not None:
            outcome = soft_failure(tool_call, EXECUTION_ERROR, hook_error)
            yield self._finish(outcome, 0.0, ids)
            yield outcome
            return

        validation_error = tool.validate_arguments(arguments)
        if validation_error is not None:
            outcome = soft_failure(tool_call, VALIDATION_ERROR, validation_error)
            yield self._finish(outcome, 0.0, ids)
            yield outcome
            return

        context = ToolContext(tool_call, agent.name, state, self.config)
        start = time.perf_counter()
        try:
            value = await tool.execute(arguments, context)
        except ToolSuspended:
            raise
        except ElicitationDeclined as e:
            outcome = soft_failure(tool_call, ELICITATION_DECLINED, str(e))
        except Exception as e:
            logger.warning(f"Tool {tool_call.name} raised exception: {e}", exc_info=True)
            outcome = soft_failure(tool_call, EXECUTION_ERROR, str(e) or type(e).__name__)
        else:
            outcome = ToolOutcome(
                tool_call=tool_call,
                status=SUCCESS,
                content=format_result(value),
                value=value,
            )
        elapsed_ms = (time.perf_counter() - start) * 1000

        yield self._finish(outcome, elapsed_ms, ids)
        yield outcome

    def _finish(self, outcome: ToolOutcome, elapsed_ms: float, ids: Dict[str, str]) -> ToolCallEnd:
        self.tracer.log_tool_result(outcome.tool_call, outcome.status, elapsed_ms, outcome.content)
        return ToolCallEnd(
            tool_call_id=outcome.tool_call.id,
            tool_name=outcome.tool_call.name,
            status=outcome.status,
            content=outcome.content,
            elapsed_ms=elapsed_ms,
            **ids,
        )

"""
gate/mock.py - Mock Gateways for Testing

This module implements ModelGateways that need no model server. They are
used by the test suite and the demos.

- EchoGateway: echoes the latest user message, or issues a tool call when
  the message reads "/tool <name> <json_args>"
- ScriptedGateway: replays a queue of scripted responses and records every
  call it receives (a spy backend)
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from core.types import Agent, Message, ToolCall
from core.state import RunState
from core.proto import ModelResponse
from .bases import GatewayError, ModelGateway, build_messages

logger = logging.getLogger(__name__)


class EchoGateway(ModelGateway):
    """A mock gateway that echoes the user or runs a forced tool command."""

    def __init__(self, model: str = "mock-model"):
        super().__init__(model)
        self.call_count = 0

    async def complete(self, state: RunState, agent: Agent, config=None) -> ModelResponse:
        """Generate a mock completion."""
        self.call_count += 1
        last = state.last_user_message
        last_msg = last.content if last else ""

        # Answer the latest tool result once the forced tool has run
        if state.messages and state.messages[-1].tool_call_id:
            return ModelResponse(message=Message.assistant(state.messages[-1].content))

        # Explicit tool command override
        # Format: /tool <name> <json_args>
        if last_msg.strip().startswith("/tool"):
            rest = last_msg.strip()[6:].strip()
            try:
                name, args_str = rest.split(" ", 1)
                args = json.loads(args_str)
            except ValueError as e:
                raise GatewayError(f"Error parsing mock tool command: {e}") from e
            tool_call = ToolCall(id=f"mock_call_{self.call_count}", name=name, arguments=args)
            return ModelResponse(
                message=Message.assistant("Executing mock tool invocation.", [tool_call])
            )

        return ModelResponse(message=Message.assistant(last_msg))


ScriptStep = Union[Message, Exception, Callable[[RunState, Agent], Message]]


class ScriptedGateway(ModelGateway):
    """Replays scripted responses in order and records each call.

    Each step is a Message, an exception to raise, or a callable building
    the Message from (state, agent). When the script runs out the gateway
    answers "No more responses", or repeats the last step if repeat_last is set.
    """

    def __init__(self, model: str = "scripted", repeat_last: bool = False):
        super().__init__(model)
        self.steps: List[ScriptStep] = []
        self.calls: List[Dict[str, Any]] = []
        self.repeat_last = repeat_last
        self._ids = 0

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def add_response(self, content: str = "", tool_calls: Optional[List[Any]] = None) -> "ScriptedGateway":
        """Add a response to return.

        Args:
            content: Assistant text
            tool_calls: ToolCall objects or (name, arguments) pairs; pairs get ids call_1, call_2, ...
        """
        calls = [self._coerce_call(tc) for tc in tool_calls] if tool_calls else None
        self.steps.append(Message.assistant(content, calls))
        return self

    def add_error(self, error: Exception) -> "ScriptedGateway":
        self.steps.append(error)
        return self

    def add_callable(self, fn: Callable[[RunState, Agent], Message]) -> "ScriptedGateway":
        self.steps.append(fn)
        return self

    def _coerce_call(self, tool_call: Any) -> ToolCall:
        if isinstance(tool_call, ToolCall):
            return tool_call
        self._ids += 1
        name, arguments = tool_call
        return ToolCall(id=f"call_{self._ids}", name=name, arguments=dict(arguments))

    async def complete(self, state: RunState, agent: Agent, config=None) -> ModelResponse:
        """Return next scripted response."""
        index = len(self.calls)
        self.calls.append({
            "agent": agent.name,
            "messages": build_messages(state, agent),
            "tools": agent.tool_names,
        })

        if index < len(self.steps):
            step = self.steps[index]
        elif self.repeat_last and self.steps:
            step = self.steps[-1]
        else:
            return ModelResponse(message=Message.assistant("No more responses"))

        if isinstance(step, Exception):
            raise step
        if isinstance(step, Message):
            return ModelResponse(message=step)
        return ModelResponse(message=step(state, agent))

"""
tool/agent_tool.py - Agents as Tools

Wraps an agent so another agent can call it like any tool. Each call runs
an isolated sub-run of the child agent:

- new run id, same trace id as the parent
- the caller's context object is shared with the child
- its own (small) turn budget

The child's output becomes the tool result. A child that errors or asks a
human for input cannot be resumed from inside a tool call, so both become
ordinary tool errors (soft failures for the parent).

Event propagation (child events go to the parent's on_event):
- "all": every child event
- "summary": run_start, final_output and run_end only
- "none": nothing
"""

import json
import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from core.types import Agent
from core.state import create_run_state
from core.events import EventKind
from .bases import BaseTool, create_json_schema

logger = logging.getLogger(__name__)

SUMMARY_EVENTS = {EventKind.RUN_START, EventKind.FINAL_OUTPUT, EventKind.RUN_END}


class AgentTool(BaseTool):
    """Tool that delegates to a child agent."""

    def __init__(
        self,
        child: Agent,
        tool_name: Optional[str] = None,
        description: Optional[str] = None,
        max_turns: int = 5,
        propagate_events: str = "summary",
    ):
        if propagate_events not in ("all", "summary", "none"):
            raise ValueError(f"propagate_events must be all, summary or none, not {propagate_events!r}")
        self.child = child
        self._name = tool_name or child.name
        self._description = description or f"Delegate a task to the '{child.name}' agent."
        self.max_turns = max_turns
        self.propagate_events = propagate_events

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> Dict[str, Any]:
        return create_json_schema(
            {"input": {"type": "string", "description": "Task or question for the agent"}},
            ["input"],
        )

    def _forwarder(self, parent_callback):
        if parent_callback is None or self.propagate_events == "none":
            return None
        if self.propagate_events == "all":
            return parent_callback

        def forward(event):
            if event.kind in SUMMARY_EVENTS:
                parent_callback(event)
        return forward

    async def execute(self, arguments: Dict[str, Any], context) -> Any:
        # Imported here: flow depends on tool, not the other way round
        from flow.loops import run

        parent = context.config
        if parent is None:
            raise RuntimeError("Agent tools need the run configuration in their context")

        state = create_run_state(
            self.child.name,
            user_message=arguments["input"],
            context=context.context,
            trace_id=context.trace_id,
        )
        config = replace(
            parent,
            catalog=parent.catalog.with_agent(self.child),
            max_turns=self.max_turns,
            on_event=self._forwarder(parent.on_event),
        )
        logger.info(
            f"[run_id={context.run_id}] [tool_call_id={context.tool_call_id}] "
            f"SUBRUN agent={self.child.name} child_run_id={state.run_id}"
        )
        result = await run(state, config)

        if result.completed:
            output = result.output
            return output if isinstance(output, str) else json.dumps(output)
        if result.interrupted:
            raise RuntimeError(
                f"Agent '{self.child.name}' needs human input, which agent tools cannot collect"
            )
        raise RuntimeError(
            f"Agent '{self.child.name}' failed: {result.error.kind.value}: {result.error.detail}"
        )


def agent_as_tool(
    child: Agent,
    tool_name: Optional[str] = None,
    description: Optional[str] = None,
    max_turns: int = 5,
    propagate_events: str = "summary",
) -> AgentTool:
    """Expose child as a tool of another agent."""
    return AgentTool(child, tool_name, description, max_turns, propagate_events)

"""
tool/handoff.py - Handoff Tools

A handoff tool lets the model transfer the conversation to another agent.
The tool's result is a Handoff value; the turn loop checks it against the
active agent's allowed handoffs and switches current_agent_name.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .bases import BaseTool, create_json_schema


@dataclass(frozen=True)
class Handoff:
    """Request to transfer control to another agent."""
    target: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"handoff_to": self.target}
        if self.reason:
            data["reason"] = self.reason
        return data


class HandoffTool(BaseTool):
    """Tool that hands the conversation to a fixed target agent."""

    def __init__(self, target: str, description: Optional[str] = None):
        self.target = target
        self._description = description or f"Transfer the conversation to the '{target}' agent."

    @property
    def name(self) -> str:
        return f"handoff_to_{self.target}"

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> Dict[str, Any]:
        return create_json_schema({
            "reason": {
                "type": "string",
                "description": "Why the conversation is being transferred",
            },
        })

    async def execute(self, arguments: Dict[str, Any], context) -> Handoff:
        return Handoff(target=self.target, reason=arguments.get("reason"))


def handoff_tool(target: str, description: Optional[str] = None) -> HandoffTool:
    """Build a tool that hands off to target."""
    return HandoffTool(target, description)

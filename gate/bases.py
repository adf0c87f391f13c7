"""
gate/bases.py - Model Gateway Interface

This module defines the abstract interface for model gateways.
Concrete adapters (OpenAI-compatible servers, local models, ...) live
outside the engine and implement this interface.

Responsibilities:
- Define the single call the engine makes to a model backend
- Normalize request formats (OpenAI-style chat messages and tools)
- Resolve which model an agent uses

Rules:
- Only depends on core/
- complete() must be safe to call concurrently from independent runs
- Any exception escaping complete() is treated as a provider error
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from core.types import Agent, Message, MessageRole
from core.state import RunState
from core.proto import ModelResponse

if TYPE_CHECKING:
    from core.proto import RunConfig


class GatewayError(Exception):
    """A model backend fault (network error, malformed response, ...)."""


class ModelGateway(ABC):
    """Abstract base class for model gateways.

    A gateway handles communication with a language model backend.
    It translates between our internal format and the model's format.
    """

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def complete(
        self,
        state: RunState,
        agent: Agent,
        config: "RunConfig",
    ) -> ModelResponse:
        """Propose the next assistant message.

        Args:
            state: Current conversation state
            agent: Active agent (instructions, tools, model settings)
            config: Run configuration (model_override, ...)

        Returns:
            ModelResponse whose message may carry tool calls

        Raises:
            GatewayError: On backend faults
        """
        pass

    async def health_check(self) -> bool:
        """Check if the model backend is healthy.

        Returns:
            True if backend is reachable and responding
        """
        return True


def resolve_model(agent: Agent, config: Optional["RunConfig"], default: Optional[str] = None) -> Optional[str]:
    """Pick the model for a call: override, then agent setting, then default."""
    if config is not None and config.model_override:
        return config.model_override
    return agent.model_config.name or default


def build_messages(state: RunState, agent: Agent) -> List[Message]:
    """Full prompt for a call: the agent's instructions followed by the history."""
    instructions = agent.render_instructions(state)
    messages = [m for m in state.messages if m.role != MessageRole.SYSTEM]
    if instructions:
        return [Message.system(instructions)] + messages
    return messages


def message_to_dict(message: Message) -> Dict[str, Any]:
    """Convert internal Message to OpenAI chat format."""
    msg_dict: Dict[str, Any] = {
        "role": message.role.value,
        "content": message.content,
    }
    if message.tool_calls:
        msg_dict["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": tc.arguments},
            }
            for tc in message.tool_calls
        ]
    if message.tool_call_id:
        msg_dict["tool_call_id"] = message.tool_call_id
    return msg_dict


def tool_to_dict(tool: Any) -> Dict[str, Any]:
    """Convert a tool to OpenAI function format."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        }
    }

"""
core/types.py - Message, ToolCall, and Agent Types

This module defines the fundamental data types used throughout the engine.
These are the contracts that all other modules depend on.

Core types:
- Message: A single message in a conversation (user, assistant, system, tool)
- ToolCall: A tool invocation proposed by the model
- ModelConfig: Model selection and sampling settings for an agent
- GuardrailConfig: Policy prompts checked before/after a model call
- Agent: A named agent definition (instructions, tools, output schema)

Rules:
- This module has NO dependencies on other packages of the project
- All types are immutable
- Every type can be converted to and from plain dicts
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from enum import Enum


class MessageRole(str, Enum):
    """Valid message roles in conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation proposed by the model.

    Attributes:
        id: Identifier generated by the model backend, unique within a turn
        name: Name of the tool to invoke
        arguments: Dictionary of arguments to pass to the tool
    """
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": dict(self.arguments)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        return cls(
            id=data["id"],
            name=data["name"],
            arguments=dict(data.get("arguments") or {}),
        )


@dataclass(frozen=True)
class Message:
    """A single message in a conversation.

    Attributes:
        role: Who sent the message (system, user, assistant, tool)
        content: The text content of the message
        tool_calls: Tool calls requested by an assistant message
        tool_call_id: For tool messages, the id of the call being answered
    """
    role: MessageRole
    content: str
    tool_calls: Optional[Tuple[ToolCall, ...]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def assistant(
        cls,
        content: str = "",
        tool_calls: Optional[List[ToolCall]] = None,
    ) -> "Message":
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        tool_calls = data.get("tool_calls")
        return cls(
            role=MessageRole(data["role"]),
            content=data.get("content") or "",
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in tool_calls) if tool_calls else None,
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass(frozen=True)
class ModelConfig:
    """Model settings for an agent.

    Attributes:
        name: Model identifier passed to the gateway
        temperature: Sampling temperature
        max_tokens: Maximum tokens to generate
    """
    name: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096


@dataclass(frozen=True)
class GuardrailConfig:
    """Policy checks applied around an agent's model calls.

    Attributes:
        input_prompt: Policy the latest user message must comply with
        output_prompt: Policy the final output must comply with
        fast_model: Model used by the evaluator (falls back to RunConfig.default_fast_model)
        require_citations: Require an [n] citation marker in the final output
    """
    input_prompt: Optional[str] = None
    output_prompt: Optional[str] = None
    fast_model: Optional[str] = None
    require_citations: bool = False


Instructions = Union[str, Callable[[Any], str]]


@dataclass(frozen=True)
class Agent:
    """A named agent definition.

    Agents are immutable after registration in the catalogue.

    Attributes:
        name: Unique name in the catalogue
        instructions: System prompt, or a callable building it from the RunState
        tools: Tools the agent may call (BaseTool instances)
        model_config: Model selection and sampling settings
        output_schema: Optional JSON schema the final output must satisfy
        guardrails: Optional input/output policy checks
        handoffs: Names of agents this agent may hand off to
    """
    name: str
    instructions: Instructions = ""
    tools: Tuple[Any, ...] = ()
    model_config: ModelConfig = field(default_factory=ModelConfig)
    output_schema: Optional[Dict[str, Any]] = None
    guardrails: Optional[GuardrailConfig] = None
    handoffs: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept lists from callers while keeping the dataclass hashable-friendly
        if not isinstance(self.tools, tuple):
            object.__setattr__(self, "tools", tuple(self.tools))
        if not isinstance(self.handoffs, tuple):
            object.__setattr__(self, "handoffs", tuple(self.handoffs))

    def render_instructions(self, state: Any) -> str:
        """Build the system prompt for the given run state."""
        if callable(self.instructions):
            return self.instructions(state)
        return self.instructions

    def find_tool(self, name: str) -> Optional[Any]:
        """Exact-name lookup among this agent's tools."""
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    @property
    def tool_names(self) -> List[str]:
        return [tool.name for tool in self.tools]


# Type aliases for clarity
Messages = List[Message]
ToolCalls = List[ToolCall]

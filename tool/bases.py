"""
tool/bases.py - Tool Interface

This module defines the abstract interface for tools.
Tools are the actions an agent can take; the model proposes calls,
the dispatcher runs them.

Responsibilities:
- Define standard tool interface
- Parameter validation against the tool's JSON schema
- Wrap plain functions as tools

Rules:
- Tools do NOT reason or make decisions
- execute() returns a plain value, raises an ordinary error (soft failure),
  or suspends through its ToolContext
- Every execute() receives the ToolContext explicitly
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING
import inspect

from jsonschema import validate, ValidationError

if TYPE_CHECKING:
    from .runtime import ToolContext


class BaseTool(ABC):
    """Abstract base class for tools.

    Each tool must implement:
    - name: Unique identifier
    - description: What the tool does
    - parameters: JSON schema for parameters
    - execute: The actual tool logic
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """JSON schema describing tool parameters."""
        pass

    @abstractmethod
    async def execute(self, arguments: Dict[str, Any], context: "ToolContext") -> Any:
        """Execute the tool with given arguments.

        Args:
            arguments: Tool arguments (validated against schema)
            context: Per-call context (run ids, caller context, suspension helpers)

        Returns:
            Any stringifiable value
        """
        pass

    def validate_arguments(self, arguments: Dict[str, Any]) -> Optional[str]:
        """Validate arguments against the tool's schema.

        This catches hallucinations and type errors early with clear error messages.

        Returns:
            None when valid, otherwise the validation error message
        """
        try:
            validate(instance=arguments, schema=self.parameters)
        except ValidationError as ve:
            return f"Invalid arguments: {ve.message}"
        return None

    def to_definition(self) -> Dict[str, Any]:
        """Tool definition as sent to a model (name, description, parameters)."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class FunctionTool(BaseTool):
    """A tool backed by a plain function (sync or async).

    The arguments are passed as keyword arguments. If the function declares
    a parameter named ``context`` it also receives the ToolContext.

    Example:
        add = FunctionTool(
            lambda a, b: a + b,
            name="add",
            description="Add two numbers",
            parameters=create_json_schema(
                {"a": {"type": "number"}, "b": {"type": "number"}}, ["a", "b"]
            ),
        )
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ):
        self.fn = fn
        self._name = name or fn.__name__
        self._description = description or inspect.getdoc(fn) or ""
        self._parameters = parameters or create_json_schema({})
        self._wants_context = "context" in inspect.signature(fn).parameters

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> Dict[str, Any]:
        return self._parameters

    async def execute(self, arguments: Dict[str, Any], context: "ToolContext") -> Any:
        kwargs = dict(arguments)
        if self._wants_context:
            kwargs["context"] = context
        result = self.fn(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def function_tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[Dict[str, Any]] = None,
) -> Callable[[Callable[..., Any]], FunctionTool]:
    """Decorator form of FunctionTool."""
    def wrap(fn: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(fn, name=name, description=description, parameters=parameters)
    return wrap


def create_json_schema(
    properties: Dict[str, Dict[str, Any]],
    required: Optional[list] = None,
) -> Dict[str, Any]:
    """Helper to create JSON schema for tool parameters.

    Args:
        properties: Parameter definitions
        required: List of required parameter names

    Returns:
        JSON schema object
    """
    schema = {
        "type": "object",
        "properties": properties,
    }

    if required:
        schema["required"] = required

    return schema

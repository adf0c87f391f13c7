"""Tool module - Tool interface, per-call context, agent catalog and dispatcher."""

from .bases import BaseTool, FunctionTool, create_json_schema, function_tool
from .runtime import ToolContext
from .index import Catalog
from .handoff import Handoff, handoff_tool
from .agent_tool import AgentTool, agent_as_tool

__all__ = [
    "BaseTool",
    "FunctionTool",
    "create_json_schema",
    "function_tool",
    "ToolContext",
    "Catalog",
    "Handoff",
    "handoff_tool",
    "AgentTool",
    "agent_as_tool",
]

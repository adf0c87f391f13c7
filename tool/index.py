"""
tool/index.py - Agent Catalog

This module implements the catalog of agents available to a run.
The catalog is the central place where agents (and through them, their
tools) are registered and discovered.

Responsibilities:
- Register agents
- Look up agents by name
- List registered agents and their tools

Rules:
- Agents must have unique names
- Tool names must be unique within one agent
- The engine only reads the catalog; it never mutates it
"""

from typing import Dict, Iterable, List, Optional

from core.types import Agent


class Catalog:
    """Name-indexed registry of agent definitions."""

    def __init__(self, agents: Optional[Iterable[Agent]] = None):
        self._agents: Dict[str, Agent] = {}
        for agent in agents or ():
            self.register(agent)

    def register(self, agent: Agent) -> None:
        """Register an agent.

        Args:
            agent: Agent definition to register

        Raises:
            ValueError: If an agent with the same name is already registered,
                or the agent exposes two tools with the same name
        """
        if agent.name in self._agents:
            raise ValueError(f"Agent '{agent.name}' is already registered")

        names = agent.tool_names
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Agent '{agent.name}' has duplicate tools: {duplicates}")

        self._agents[agent.name] = agent

    def get(self, name: str) -> Optional[Agent]:
        """Get an agent by name.

        Returns:
            Agent or None if not found
        """
        return self._agents.get(name)

    def has(self, name: str) -> bool:
        return name in self._agents

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def list(self) -> List[str]:
        """List all registered agent names."""
        return list(self._agents.keys())

    def with_agent(self, agent: Agent) -> "Catalog":
        """Return a new catalog in which agent is registered under its name.

        An existing entry with the same name is replaced. The original
        catalog is untouched.
        """
        catalog = Catalog(a for a in self._agents.values() if a.name != agent.name)
        catalog.register(agent)
        return catalog

    @property
    def count(self) -> int:
        """Get number of registered agents."""
        return len(self._agents)

"""
boot/wires.py - Dependency Wiring

This module turns the process configuration from boot/setup.py into the
objects a run needs.

Responsibilities:
- Build a RunConfig from the configuration dict
- Apply explicit overrides (callbacks, hooks, guardrails)

Rules:
- No business logic
- Just instantiation and wiring
"""

import logging
from dataclasses import fields
from typing import Any, Dict

from core.proto import RunConfig
from gate.bases import ModelGateway
from tool.index import Catalog

logger = logging.getLogger(__name__)


def build_run_config(
    config: Dict[str, Any],
    gateway: ModelGateway,
    catalog: Catalog,
    **overrides: Any,
) -> RunConfig:
    """Wire a RunConfig.

    Args:
        config: Configuration dictionary from setup.load_config()
        gateway: Model backend
        catalog: Agent catalog
        **overrides: Any RunConfig field (on_event, before_tool_execution, ...)

    Returns:
        RunConfig ready for flow.loops.run()

    Raises:
        ValueError: If an override is not a RunConfig field
    """
    known = {f.name for f in fields(RunConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown RunConfig fields: {unknown}")

    values: Dict[str, Any] = {
        "max_turns": config.get("max_turns", 50),
        "model_override": config.get("model"),
        "default_fast_model": config.get("fast_model"),
        "handoff_consumes_turn": config.get("handoff_consumes_turn", True),
        "guardrail_cache": config.get("guardrail_cache", True),
    }
    values.update(overrides)

    run_config = RunConfig(catalog=catalog, gateway=gateway, **values)
    logger.info(
        f"Wired RunConfig: agents={catalog.list()} max_turns={run_config.max_turns} "
        f"model_override={run_config.model_override}"
    )
    return run_config

"""
flow/pipes.py - Multi-Agent Pipelines

Compose independent runs of several agents over one input.

- run_sequential: each agent receives the previous agent's output
- run_parallel: optional first agent, then branches on the same input
  concurrently, then an optional aggregator over the joined branch outputs
- run_coordinator: start, judge, then one of two branches picked by a
  predicate on the judge's output, then a closing agent
- run_parallel_redundant: several agents answer the same query and an
  evaluator compares their labelled answers

All runs of one pipeline share a trace id. A result that is not
Completed stops the pipeline and is reported as the failure.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from core.state import create_run_state, generate_trace_id
from core.proto import RunConfig, RunResult
from .loops import run

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Results of a pipeline, in the order the agents ran.

    Attributes:
        results: One RunResult per agent that ran
        failed: The first result that did not complete, if any
    """
    results: List[RunResult] = field(default_factory=list)
    failed: Optional[RunResult] = None

    @property
    def ok(self) -> bool:
        return self.failed is None

    @property
    def output(self) -> Any:
        """Output of the last agent that ran, or None on failure."""
        if not self.ok or not self.results:
            return None
        return self.results[-1].output

    @property
    def outputs(self) -> List[Any]:
        return [r.output for r in self.results]


def _as_text(output: Any) -> str:
    return output if isinstance(output, str) else json.dumps(output)


class _Pipeline:
    """Shared bookkeeping for the pipeline shapes below."""

    def __init__(self, context: Any, config: RunConfig):
        self.context = context
        self.config = config
        self.trace_id = generate_trace_id()
        self.result = PipelineResult()

    def _state(self, name: str, text: str):
        return create_run_state(name, user_message=text, context=self.context, trace_id=self.trace_id)

    def _record(self, name: str, result: RunResult) -> bool:
        self.result.results.append(result)
        if result.completed:
            return True
        if self.result.failed is None:
            logger.warning(f"Pipeline stopped at agent {name}: status={result.status.value}")
            self.result.failed = result
        return False

    async def step(self, name: str, text: str) -> Optional[str]:
        """Run one agent; its output as text, or None if it did not complete."""
        result = await run(self._state(name, text), self.config)
        if not self._record(name, result):
            return None
        return _as_text(result.output)

    async def fan_out(self, names: List[str], text: str) -> Optional[List[str]]:
        """Run agents concurrently on one input; outputs in agent order, or None."""
        results = await asyncio.gather(*(run(self._state(name, text), self.config) for name in names))
        ok = True
        for name, result in zip(names, results):
            ok = self._record(name, result) and ok
        if not ok:
            return None
        return [_as_text(r.output) for r in results]


async def run_sequential(
    agent_names: List[str],
    text: str,
    context: Any,
    config: RunConfig,
) -> PipelineResult:
    """Chain agents: the output of one is the user message of the next."""
    pipeline = _Pipeline(context, config)
    current: Optional[str] = text
    for name in agent_names:
        current = await pipeline.step(name, current)
        if current is None:
            break
    return pipeline.result


async def run_parallel(
    agent_names: List[str],
    text: str,
    context: Any,
    config: RunConfig,
    first: Optional[str] = None,
    aggregator: Optional[str] = None,
) -> PipelineResult:
    """Fan out to agent_names concurrently, optionally between two agents.

    Args:
        agent_names: Branches, all given the same input
        text: Pipeline input
        context: Context shared by every run
        config: Run configuration shared by every run
        first: Agent run before the branches; its output becomes their input
        aggregator: Agent given the branch outputs joined by newlines

    Returns:
        PipelineResult; output is the aggregator's when one is given
    """
    pipeline = _Pipeline(context, config)
    current: Optional[str] = text
    if first is not None:
        current = await pipeline.step(first, current)
        if current is None:
            return pipeline.result

    outputs = await pipeline.fan_out(agent_names, current)
    if outputs is None or aggregator is None:
        return pipeline.result

    await pipeline.step(aggregator, "\n".join(outputs))
    return pipeline.result


async def run_coordinator(
    start: str,
    judge: str,
    on_true: str,
    on_false: str,
    end: str,
    condition: Callable[[str], bool],
    text: str,
    context: Any,
    config: RunConfig,
) -> PipelineResult:
    """start -> judge -> (on_true if condition(judge output) else on_false) -> end."""
    pipeline = _Pipeline(context, config)
    current = await pipeline.step(start, text)
    if current is None:
        return pipeline.result
    verdict = await pipeline.step(judge, current)
    if verdict is None:
        return pipeline.result

    branch = on_true if condition(verdict) else on_false
    logger.info(f"Coordinator {judge} routed to {branch}")
    current = await pipeline.step(branch, verdict)
    if current is None:
        return pipeline.result

    await pipeline.step(end, current)
    return pipeline.result


async def run_parallel_redundant(
    agent_names: List[str],
    evaluator: str,
    text: str,
    context: Any,
    config: RunConfig,
) -> PipelineResult:
    """Ask every agent the same query, then let evaluator compare the answers.

    The evaluator receives one "Agent <name>: <output>" line per agent.
    """
    pipeline = _Pipeline(context, config)
    outputs = await pipeline.fan_out(agent_names, text)
    if outputs is None:
        return pipeline.result

    comparison = "\n".join(f"Agent {name}: {output}" for name, output in zip(agent_names, outputs))
    await pipeline.step(evaluator, comparison)
    return pipeline.result

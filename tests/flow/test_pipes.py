"""
tests/flow/test_pipes.py - Pipeline Tests
"""

import pytest

from core.types import Agent, Message
from core.proto import ErrorKind, RunConfig
from gate.mock import ScriptedGateway
from flow.pipes import run_coordinator, run_parallel, run_parallel_redundant, run_sequential
from tool import Catalog

AGENTS = ["plan", "draft", "edit", "judge", "fast", "slow", "close", "merge"]


def tagging_config():
    gateway = ScriptedGateway(repeat_last=True).add_callable(
        lambda state, agent: Message.assistant(f"{agent.name}:{state.last_user_message.content}")
    )
    return RunConfig(catalog=Catalog([Agent(name=name) for name in AGENTS]), gateway=gateway)


def agent_order(pipeline):
    return [r.final_state.current_agent_name for r in pipeline.results]


class TestSequential:

    @pytest.mark.asyncio
    async def test_chains_outputs(self):
        pipeline = await run_sequential(["draft", "edit"], "topic", None, tagging_config())

        assert pipeline.ok
        assert pipeline.outputs == ["draft:topic", "edit:draft:topic"]
        assert pipeline.output == "edit:draft:topic"
        first, second = pipeline.results
        assert first.final_state.trace_id == second.final_state.trace_id
        assert first.final_state.run_id != second.final_state.run_id

    @pytest.mark.asyncio
    async def test_stops_on_failure(self):
        pipeline = await run_sequential(["draft", "ghost", "edit"], "topic", None, tagging_config())

        assert not pipeline.ok
        assert len(pipeline.results) == 2
        assert pipeline.failed.error.kind == ErrorKind.AGENT_NOT_FOUND
        assert pipeline.output is None


class TestParallel:

    @pytest.mark.asyncio
    async def test_same_input(self):
        pipeline = await run_parallel(["draft", "edit"], "topic", {"lang": "en"}, tagging_config())

        assert pipeline.ok
        assert pipeline.outputs == ["draft:topic", "edit:topic"]
        assert len({r.final_state.trace_id for r in pipeline.results}) == 1

    @pytest.mark.asyncio
    async def test_first_then_branches_then_aggregator(self):
        pipeline = await run_parallel(["draft", "edit"], "topic", None, tagging_config(),
                                      first="plan", aggregator="merge")

        assert pipeline.ok
        assert agent_order(pipeline) == ["plan", "draft", "edit", "merge"]
        assert pipeline.output == "merge:draft:plan:topic\nedit:plan:topic"
        assert len({r.final_state.trace_id for r in pipeline.results}) == 1

    @pytest.mark.asyncio
    async def test_failed_branch_skips_aggregator(self):
        pipeline = await run_parallel(["draft", "ghost"], "topic", None, tagging_config(), aggregator="merge")

        assert not pipeline.ok
        assert pipeline.failed.error.kind == ErrorKind.AGENT_NOT_FOUND
        assert len(pipeline.results) == 2
        assert "merge" not in agent_order(pipeline)

    @pytest.mark.asyncio
    async def test_failed_first_skips_branches(self):
        pipeline = await run_parallel(["draft", "edit"], "topic", None, tagging_config(), first="ghost")

        assert not pipeline.ok
        assert len(pipeline.results) == 1


class TestCoordinator:

    @staticmethod
    async def coordinate(text):
        return await run_coordinator(
            "plan", "judge", "fast", "slow", "close",
            lambda verdict: "urgent" in verdict,
            text, None, tagging_config(),
        )

    @pytest.mark.asyncio
    async def test_true_branch(self):
        pipeline = await self.coordinate("urgent topic")

        assert pipeline.ok
        assert agent_order(pipeline) == ["plan", "judge", "fast", "close"]
        assert pipeline.output == "close:fast:judge:plan:urgent topic"

    @pytest.mark.asyncio
    async def test_false_branch(self):
        pipeline = await self.coordinate("topic")

        assert agent_order(pipeline) == ["plan", "judge", "slow", "close"]
        assert pipeline.output == "close:slow:judge:plan:topic"

    @pytest.mark.asyncio
    async def test_stops_on_failure(self):
        pipeline = await run_coordinator("plan", "ghost", "fast", "slow", "close",
                                         lambda verdict: True, "topic", None, tagging_config())

        assert pipeline.failed.error.kind == ErrorKind.AGENT_NOT_FOUND
        assert agent_order(pipeline) == ["plan", "ghost"]


class TestParallelRedundant:

    @pytest.mark.asyncio
    async def test_evaluator_sees_labelled_answers(self):
        pipeline = await run_parallel_redundant(["draft", "edit"], "merge", "q", None, tagging_config())

        assert pipeline.ok
        assert agent_order(pipeline) == ["draft", "edit", "merge"]
        assert pipeline.output == "merge:Agent draft: draft:q\nAgent edit: edit:q"

    @pytest.mark.asyncio
    async def test_failed_answer_skips_evaluator(self):
        pipeline = await run_parallel_redundant(["ghost", "edit"], "merge", "q", None, tagging_config())

        assert not pipeline.ok
        assert pipeline.failed.error.kind == ErrorKind.AGENT_NOT_FOUND
        assert "merge" not in agent_order(pipeline)

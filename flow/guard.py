"""
flow/guard.py - Guardrail Evaluation

Guardrails are policy checks applied to the latest user message (input
stage) and to the final output (output stage).

Kinds of checks:
- LLM policy: a second model call classifies the content against a policy
  prompt (GuardrailConfig.input_prompt / output_prompt)
- Citations: the output must contain an [n] marker (require_citations)
- Custom: sync or async callables in RunConfig.input_guardrails /
  output_guardrails

Verdict policy:
- Allow by default: content is blocked only on an explicit
  {"allowed": false} from the evaluator
- Evaluator faults are never treated as a pass: they raise
  GuardrailEvaluatorError, which the turn loop reports as
  GUARDRAIL_EVALUATOR_FAILURE

Verdicts of LLM checks are cached (LRU with TTL) keyed by stage, model,
policy prompt and content.
"""

import json
import logging
import re
import time
import inspect
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TYPE_CHECKING

from core.types import Agent, ModelConfig
from core.state import create_run_state
from core.proto import ModelResponse

if TYPE_CHECKING:
    from core.proto import RunConfig
    from gate.bases import ModelGateway

logger = logging.getLogger(__name__)


EVALUATOR_INSTRUCTIONS = (
    "You are a strict policy checker. Decide whether the content complies "
    "with the policy. Respond with JSON only: "
    '{"allowed": true|false, "reason": "short explanation"}'
)

MAX_CONTENT_CHARS = 2000
CITATION_PATTERN = re.compile(r"\[\d+\]")


@dataclass(frozen=True)
class GuardrailVerdict:
    is_valid: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "GuardrailVerdict":
        return cls(is_valid=True)

    @classmethod
    def block(cls, reason: str) -> "GuardrailVerdict":
        return cls(is_valid=False, reason=reason)


class GuardrailEvaluatorError(Exception):
    """The guardrail evaluator itself failed (backend fault, broken custom check)."""


class VerdictCache:
    """LRU cache of verdicts with a time-to-live."""

    def __init__(self, max_size: int = 1000, ttl_seconds: float = 300.0):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[Tuple, Tuple[float, GuardrailVerdict]]" = OrderedDict()

    def get(self, key: Tuple) -> Optional[GuardrailVerdict]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, verdict = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return verdict

    def put(self, key: Tuple, verdict: GuardrailVerdict) -> None:
        self._entries[key] = (time.monotonic(), verdict)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Shared by every evaluator that opts into caching; entries are keyed by content only
default_cache = VerdictCache()


def sanitize_content(content: str) -> str:
    """Make content safe to embed in the evaluator prompt."""
    cleaned = content.replace('"""', "'''").replace("\r", " ").replace("\n", " ")
    return cleaned[:MAX_CONTENT_CHARS]


def build_evaluation_prompt(stage: str, policy: str, content: str) -> str:
    subject = "user input" if stage == "input" else "assistant output"
    return (
        f"Policy:\n{policy}\n\n"
        f"Evaluate the following {subject}:\n"
        f'"""{sanitize_content(content)}"""'
    )


def parse_verdict(text: str) -> GuardrailVerdict:
    """Interpret the evaluator's answer (allow unless explicitly disallowed)."""
    data: Any = None
    try:
        data = json.loads(text)
    except ValueError:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if match:
            try:
                data = json.loads(match.group(0))
            except ValueError:
                data = None
    if isinstance(data, dict) and data.get("allowed") is False:
        return GuardrailVerdict.block(str(data.get("reason") or "Content violates policy"))
    return GuardrailVerdict.allow()


class GuardrailEvaluator:
    """Asks a (possibly cheaper) model whether content complies with a policy."""

    def __init__(
        self,
        gateway: "ModelGateway",
        default_fast_model: Optional[str] = None,
        cache: Optional[VerdictCache] = None,
    ):
        self.gateway = gateway
        self.default_fast_model = default_fast_model
        self.cache = cache

    async def evaluate(
        self,
        content: str,
        policy_prompt: str,
        stage: str = "input",
        fast_model: Optional[str] = None,
    ) -> GuardrailVerdict:
        """Classify content against a policy.

        Raises:
            GuardrailEvaluatorError: If the evaluator call fails
        """
        model = fast_model or self.default_fast_model
        key = (stage, model, policy_prompt, content)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Guardrail cache hit (stage={stage})")
                return cached

        evaluator = Agent(
            name="guardrail_evaluator",
            instructions=EVALUATOR_INSTRUCTIONS,
            model_config=ModelConfig(name=model, temperature=0.0, max_tokens=200),
        )
        state = create_run_state(
            evaluator.name,
            user_message=build_evaluation_prompt(stage, policy_prompt, content),
        )
        try:
            response = await self.gateway.complete(state, evaluator, None)
        except Exception as e:
            logger.error(f"Guardrail evaluator failed (stage={stage}): {e}")
            raise GuardrailEvaluatorError(str(e) or type(e).__name__) from e

        if not isinstance(response, ModelResponse) or not isinstance(response.message.content, str):
            logger.error(f"Malformed guardrail evaluator response (stage={stage}): {response!r}")
            raise GuardrailEvaluatorError("Malformed evaluator response")

        verdict = parse_verdict(response.message.content)
        if self.cache is not None:
            self.cache.put(key, verdict)
        return verdict


CheckFn = Callable[[str], Awaitable[GuardrailVerdict]]


def _wrap_custom(fn: Callable[..., Any]) -> CheckFn:
    async def check(content: str) -> GuardrailVerdict:
        try:
            verdict = fn(content)
            if inspect.isawaitable(verdict):
                verdict = await verdict
        except Exception as e:
            raise GuardrailEvaluatorError(f"Custom guardrail failed: {e}") from e
        if isinstance(verdict, bool):
            return GuardrailVerdict(is_valid=verdict, reason=None if verdict else "Rejected by custom guardrail")
        if not isinstance(verdict, GuardrailVerdict):
            raise GuardrailEvaluatorError(
                f"Custom guardrail returned {type(verdict).__name__}, expected bool or GuardrailVerdict"
            )
        return verdict
    return check


def _citations_check(content: str) -> GuardrailVerdict:
    if CITATION_PATTERN.search(content):
        return GuardrailVerdict.allow()
    return GuardrailVerdict.block("Output must include at least one citation like [1]")


def collect_checks(
    stage: str,
    agent: Agent,
    config: "RunConfig",
    evaluator: GuardrailEvaluator,
) -> List[Tuple[str, CheckFn]]:
    """Ordered (rule name, check) pairs that apply to a stage."""
    checks: List[Tuple[str, CheckFn]] = []
    rails = agent.guardrails
    prompt = None
    if rails is not None:
        prompt = rails.input_prompt if stage == "input" else rails.output_prompt

    if prompt:
        fast_model = rails.fast_model

        async def llm_check(content: str) -> GuardrailVerdict:
            return await evaluator.evaluate(content, prompt, stage, fast_model)

        checks.append((f"{stage}_policy", llm_check))

    if stage == "output" and rails is not None and rails.require_citations:
        async def citations(content: str) -> GuardrailVerdict:
            return _citations_check(content)
        checks.append(("citations", citations))

    custom = config.input_guardrails if stage == "input" else config.output_guardrails
    for fn in custom:
        checks.append((getattr(fn, "__name__", "custom"), _wrap_custom(fn)))
    return checks


def build_evaluator(config: "RunConfig") -> GuardrailEvaluator:
    return GuardrailEvaluator(
        gateway=config.guardrail_gateway or config.gateway,
        default_fast_model=config.default_fast_model,
        cache=default_cache if config.guardrail_cache else None,
    )

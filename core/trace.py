"""
core/trace.py - Run Traceability

This module provides structured, grep-able logging for engine runs.
Every turn, tool call, suspension and guardrail decision can be traced
via run_id, tool_call_id and interruption id.

Responsibilities:
- Centralized trace logging format
- Consistent log structure for grep/search
- Timing information for performance analysis

Usage:
    tracer = TraceLogger(run_id="run_abc123")
    tracer.log_tool_call(tool_call)
    # ... execute tool ...
    tracer.log_tool_result(tool_call, "success", elapsed_ms=12.3)

Log Format:
    [run_id=X] TURN {n}/{max} agent={name}
    [run_id=X] [tool_call_id=Y] CALL Tool={name} Args={...}
    [run_id=X] [tool_call_id=Y] RESULT {status} Tool={name} elapsed={ms}ms
    [run_id=X] [tool_call_id=Y] SUSPEND kind={kind} id={interruption_id}
    [run_id=X] [tool_call_id=Y] RESUME id={interruption_id}
    [run_id=X] GUARDRAIL stage={stage} valid={bool}
    [run_id=X] HANDOFF from={a} to={b}
    [run_id=X] END status={status} turns={n}
"""

import logging
import json
from typing import Dict, Any, Optional

from core.types import ToolCall

logger = logging.getLogger("agent.trace")


class TraceLogger:
    """Centralized run tracing for debuggability.

    All engine transitions go through this logger for consistent, grep-able output.
    """

    def __init__(self, run_id: str):
        """Initialize tracer with run ID.

        Args:
            run_id: Identifier of the run being traced
        """
        self.run_id = run_id

    def log_turn(self, turn_num: int, max_turns: int, agent_name: str) -> None:
        logger.debug(
            f"[run_id={self.run_id}] TURN {turn_num}/{max_turns} agent={agent_name}"
        )

    def log_tool_call(self, tool_call: ToolCall, arguments: Optional[Dict[str, Any]] = None) -> None:
        """Log when a tool call is initiated.

        Format: [run_id=X] [tool_call_id=Y] CALL Tool={name} Args={...}

        Args:
            tool_call: The tool call being made
            arguments: Final arguments when a hook replaced the model's
        """
        args_str = self._format_args(tool_call.arguments if arguments is None else arguments)

        logger.info(
            f"[run_id={self.run_id}] [tool_call_id={tool_call.id}] "
            f"CALL Tool={tool_call.name} Args={args_str}"
        )

    def log_tool_result(
        self,
        tool_call: ToolCall,
        status: str,
        elapsed_ms: float,
        content: Optional[str] = None,
    ) -> None:
        """Log when a tool call completes (successfully or as a soft failure).

        Format: [run_id=X] [tool_call_id=Y] RESULT {status} Tool={name} elapsed={ms}ms

        Args:
            tool_call: The tool call that finished
            status: "success" or the soft failure status
            elapsed_ms: Time taken in milliseconds
            content: Result content sent back to the model
        """
        extra = ""
        if content is not None:
            if status == "success":
                extra = f" output_len={len(content)}"
            else:
                snippet = content[:100].replace('\n', ' ')
                extra = f" error=\"{snippet}\""

        logger.info(
            f"[run_id={self.run_id}] [tool_call_id={tool_call.id}] "
            f"RESULT {status} Tool={tool_call.name} elapsed={elapsed_ms:.1f}ms{extra}"
        )

    def log_suspend(self, tool_call: ToolCall, kind: str, interruption_id: str) -> None:
        logger.info(
            f"[run_id={self.run_id}] [tool_call_id={tool_call.id}] "
            f"SUSPEND kind={kind} id={interruption_id}"
        )

    def log_resume(self, tool_call_id: str, interruption_id: str) -> None:
        logger.info(
            f"[run_id={self.run_id}] [tool_call_id={tool_call_id}] RESUME id={interruption_id}"
        )

    def log_guardrail(self, stage: str, is_valid: bool, reason: Optional[str] = None) -> None:
        reason_info = f" reason=\"{reason[:100]}\"" if reason else ""
        level = logging.INFO if is_valid else logging.WARNING
        logger.log(
            level,
            f"[run_id={self.run_id}] GUARDRAIL stage={stage} valid={is_valid}{reason_info}",
        )

    def log_handoff(self, from_agent: str, to_agent: str, allowed: bool = True) -> None:
        if allowed:
            logger.info(f"[run_id={self.run_id}] HANDOFF from={from_agent} to={to_agent}")
        else:
            logger.warning(
                f"[run_id={self.run_id}] HANDOFF_DENIED from={from_agent} to={to_agent}"
            )

    def log_end(self, status: str, turn_count: int, detail: Optional[str] = None) -> None:
        detail_info = f" detail=\"{detail[:100]}\"" if detail else ""
        logger.info(
            f"[run_id={self.run_id}] END status={status} turns={turn_count}{detail_info}"
        )

    def _format_args(self, args: Dict[str, Any], max_len: int = 200) -> str:
        """Format arguments for logging, truncating if needed.

        Args:
            args: Tool arguments dict
            max_len: Maximum string length

        Returns:
            Formatted arguments string
        """
        try:
            args_json = json.dumps(args)
            if len(args_json) > max_len:
                return args_json[:max_len] + "..."
            return args_json
        except (TypeError, ValueError):
            return str(args)[:max_len]

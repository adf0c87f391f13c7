"""
tool/runtime.py - Tool Context

Each tool execution receives a ToolContext. It carries the identifiers of
the run, the caller's context object and the resolutions supplied for this
tool call, and it offers the helpers a tool uses to ask a human for help.

Suspension helpers:
- clarify(): pick one of several options
- elicit() and its forms (ask_text, confirm, choose, ask_number, contact_info)
- require_auth(): obtain an authorization

Each helper call gets a deterministic interruption id
({tool_call_id}:{kind}:{ordinal}). If the caller already supplied a
resolution under that id, the helper returns it. Otherwise it raises
ToolSuspended and the run is interrupted. Re-executing the tool after a
resolution replays the earlier helper calls with the same ids, so the tool
body runs again from the top and gets its answers back in order.

Rules:
- No ambient globals: the context is a parameter of every execute()
- A ToolContext lives for exactly one execution of one tool call
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from core.types import ToolCall
from core.state import RunState
from core.pauses import (
    AuthChallenge,
    ClarificationRequest,
    ElicitationDeclined,
    ElicitationRequest,
    InterruptionKind,
    ToolSuspended,
    coerce_options,
    make_interruption_id,
)
from core.elicit import (
    ElicitationResponse,
    check_schema,
    choice_schema,
    confirmation_schema,
    contact_info_schema,
    number_schema,
    text_schema,
    validate_elicitation_response,
)

if TYPE_CHECKING:
    from core.proto import RunConfig


class ToolContext:
    """Per-call context handed to BaseTool.execute()."""

    def __init__(
        self,
        tool_call: ToolCall,
        agent_name: str,
        state: RunState,
        config: Optional["RunConfig"] = None,
    ):
        self.tool_call = tool_call
        self.agent_name = agent_name
        self.run_id = state.run_id
        self.trace_id = state.trace_id
        self.context = state.context
        self.config = config
        prefix = f"{tool_call.id}:"
        self.resolutions: Dict[str, Any] = {
            key: value
            for key, value in state.pending_resolutions.items()
            if key.startswith(prefix)
        }
        self._ordinal = 0

    @property
    def tool_call_id(self) -> str:
        return self.tool_call.id

    def _next_id(self, kind: InterruptionKind) -> str:
        interruption_id = make_interruption_id(self.tool_call.id, kind, self._ordinal)
        self._ordinal += 1
        return interruption_id

    # ------------------------------------------------------------------
    # Clarification
    # ------------------------------------------------------------------

    def clarify(
        self,
        question: str,
        options: List[Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Ask the user to pick one option.

        Args:
            question: Question shown to the user
            options: Strings, (id, label) pairs or ClarificationOption values
            context: Optional extra data for the UI

        Returns:
            The selected option id
        """
        interruption_id = self._next_id(InterruptionKind.CLARIFICATION)
        if interruption_id in self.resolutions:
            return self.resolutions[interruption_id]
        request = ClarificationRequest(
            question=question,
            options=coerce_options(options),
            context=context,
        )
        raise ToolSuspended(interruption_id, InterruptionKind.CLARIFICATION, request)

    # ------------------------------------------------------------------
    # Elicitation
    # ------------------------------------------------------------------

    def elicit(
        self,
        message: str,
        schema: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Ask the user to fill a flat form.

        Returns:
            Accepted form content (validated against schema)

        Raises:
            ElicitationDeclined: The user declined or cancelled
            ValueError: The schema is not a flat form, or the answer does not fit it
        """
        check_schema(schema)
        interruption_id = self._next_id(InterruptionKind.ELICITATION)
        request = ElicitationRequest(
            message=message,
            requested_schema=schema,
            metadata=metadata,
            id=interruption_id,
        )
        if interruption_id not in self.resolutions:
            raise ToolSuspended(interruption_id, InterruptionKind.ELICITATION, request)

        response = ElicitationResponse.from_value(self.resolutions[interruption_id])
        if not response.accepted:
            raise ElicitationDeclined(response.action.value, request)
        validate_elicitation_response(schema, response)
        return dict(response.content)

    def ask_text(
        self,
        message: str,
        title: Optional[str] = None,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        required: bool = True,
    ) -> str:
        result = self.elicit(message, text_schema(message, title, min_length, max_length, required))
        return result.get("text", "")

    def confirm(self, message: str) -> bool:
        result = self.elicit(message, confirmation_schema(message))
        return bool(result.get("confirmed"))

    def choose(
        self,
        message: str,
        choices: List[str],
        title: Optional[str] = None,
        labels: Optional[List[str]] = None,
    ) -> str:
        result = self.elicit(message, choice_schema(message, choices, title, labels))
        return result["choice"]

    def ask_number(
        self,
        message: str,
        title: Optional[str] = None,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        integer: bool = False,
    ) -> float:
        result = self.elicit(message, number_schema(message, title, minimum, maximum, integer))
        return result["number"]

    def contact_info(self, message: str = "Please provide your contact information") -> Dict[str, Any]:
        result = self.elicit(message, contact_info_schema())
        return {
            "name": result.get("name"),
            "email": result.get("email"),
            "phone": result.get("phone"),
        }

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def require_auth(
        self,
        auth_key: str,
        authorization_url: Optional[str] = None,
        scopes: Optional[List[str]] = None,
        scheme: str = "oauth2",
    ) -> Any:
        """Obtain an authorization from the user.

        The engine does not exchange or refresh tokens; it returns whatever
        the caller supplied as the resolution (a token, a callback payload, ...).
        """
        interruption_id = self._next_id(InterruptionKind.TOOL_AUTH)
        if interruption_id in self.resolutions:
            return self.resolutions[interruption_id]
        challenge = AuthChallenge(
            auth_key=auth_key,
            authorization_url=authorization_url,
            scopes=tuple(scopes or ()),
            scheme=scheme,
        )
        raise ToolSuspended(interruption_id, InterruptionKind.TOOL_AUTH, challenge)

"""
core/pauses.py - Suspension Signals and Interruption Records

A tool that needs something only a human can supply does not block. It
raises ToolSuspended carrying one of three payloads:

- AuthChallenge: the tool needs the user to authorize access
- ElicitationRequest: the tool needs structured input (a form)
- ClarificationRequest: the tool needs the user to pick among options

The turn loop turns that signal into an Interruption record: plain data,
keyed by a deterministic interruption id, holding everything needed to
re-enter the run later through the ordinary entry point.

Interruption id format:
    {tool_call_id}:{kind}:{ordinal}

The ordinal counts suspension requests made by one tool execution, so a
tool that asks twice gets two distinct, stable ids across re-executions.

Rules:
- Only depends on core/types.py and core/state.py
- Interruptions are immutable and round-trip through to_dict/from_dict
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type
from enum import Enum
import uuid

from .types import ToolCall
from .state import RunState


class InterruptionKind(str, Enum):
    """Causes that can suspend a tool call."""
    TOOL_AUTH = "tool_auth"
    ELICITATION = "elicitation"
    CLARIFICATION = "clarification"


def make_interruption_id(tool_call_id: str, kind: InterruptionKind, ordinal: int) -> str:
    """Build the stable id correlating a suspension with its resolution."""
    return f"{tool_call_id}:{kind.value}:{ordinal}"


def split_interruption_id(interruption_id: str) -> Tuple[str, InterruptionKind, int]:
    """Inverse of make_interruption_id.

    Raises:
        ValueError: If the id was not produced by make_interruption_id
    """
    tool_call_id, kind, ordinal = interruption_id.rsplit(":", 2)
    return tool_call_id, InterruptionKind(kind), int(ordinal)


# ---------------------------------------------------------------------------
# Suspension payloads (raised by tools)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthChallenge:
    """The tool cannot proceed without an authorization from the user.

    Attributes:
        auth_key: Key identifying the credential being requested
        authorization_url: Where the user should go to grant access
        scopes: Requested scopes, if any
        scheme: Auth scheme type (oauth2, openidconnect, apiKey, ...)
    """
    auth_key: str
    authorization_url: Optional[str] = None
    scopes: Tuple[str, ...] = ()
    scheme: str = "oauth2"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auth_key": self.auth_key,
            "authorization_url": self.authorization_url,
            "scopes": list(self.scopes),
            "scheme": self.scheme,
        }


@dataclass(frozen=True)
class ElicitationRequest:
    """A request for structured input from the user.

    Attributes:
        message: What is being asked, shown to the user
        requested_schema: Flat JSON object schema the answer must satisfy
        metadata: Optional extra data for the UI
        id: Request id (independent from the interruption id)
    """
    message: str
    requested_schema: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
    id: str = field(default_factory=lambda: f"elicit_{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "requested_schema": self.requested_schema,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElicitationRequest":
        return cls(
            id=data["id"],
            message=data["message"],
            requested_schema=data["requested_schema"],
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class ClarificationOption:
    """One choice offered to the user."""
    id: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label}


@dataclass(frozen=True)
class ClarificationRequest:
    """A request to disambiguate among discrete options.

    Attributes:
        question: Question shown to the user
        options: The choices (at least one)
        context: Optional extra data explaining the ambiguity
    """
    question: str
    options: Tuple[ClarificationOption, ...]
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "options": [o.to_dict() for o in self.options],
            "context": self.context,
        }


def coerce_options(options: List[Any]) -> Tuple[ClarificationOption, ...]:
    """Accept plain strings, (id, label) pairs or ClarificationOption values."""
    coerced = []
    for option in options:
        if isinstance(option, ClarificationOption):
            coerced.append(option)
        elif isinstance(option, str):
            coerced.append(ClarificationOption(id=option, label=option))
        elif isinstance(option, dict):
            coerced.append(ClarificationOption(id=str(option["id"]), label=str(option["label"])))
        else:
            option_id, label = option
            coerced.append(ClarificationOption(id=str(option_id), label=str(label)))
    if not coerced:
        raise ValueError("A clarification needs at least one option")
    return tuple(coerced)


class ToolSuspended(Exception):
    """Raised inside a tool to pause the run until a human answers.

    Only the turn loop catches this; the dispatcher lets it pass through.
    """

    def __init__(self, interruption_id: str, kind: InterruptionKind, payload: Any):
        super().__init__(f"Tool suspended ({kind.value}): {interruption_id}")
        self.interruption_id = interruption_id
        self.kind = kind
        self.payload = payload


class ElicitationDeclined(Exception):
    """The user declined or cancelled an elicitation."""

    def __init__(self, action: str, request: ElicitationRequest):
        super().__init__(f"User chose to {action} the request: {request.message}")
        self.action = action
        self.request = request


# ---------------------------------------------------------------------------
# Interruption records (returned to the caller)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Interruption:
    """Base record for a suspended tool call.

    Attributes:
        id: Interruption id; the key to use in pending_resolutions
        tool_call: The exact tool call that was paused
        agent_name: Agent that owned the tool
        state: Conversation state as it stood immediately before the call
        max_turns: Turn budget of the run that was suspended
    """
    kind: ClassVar[InterruptionKind]
    _registry: ClassVar[Dict[str, Type["Interruption"]]] = {}

    id: str
    tool_call: ToolCall
    agent_name: str
    state: RunState
    max_turns: int

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        Interruption._registry[cls.kind.value] = cls

    @property
    def tool_call_id(self) -> str:
        return self.tool_call.id

    @property
    def run_id(self) -> str:
        return self.state.run_id

    def _payload_dict(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.kind.value,
            "id": self.id,
            "tool_call": self.tool_call.to_dict(),
            "agent_name": self.agent_name,
            "state": self.state.to_dict(),
            "max_turns": self.max_turns,
        }
        data.update(self._payload_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interruption":
        target = Interruption._registry[data["type"]]
        common = {
            "id": data["id"],
            "tool_call": ToolCall.from_dict(data["tool_call"]),
            "agent_name": data["agent_name"],
            "state": RunState.from_dict(data["state"]),
            "max_turns": data["max_turns"],
        }
        return target._from_payload(common, data)

    @classmethod
    def _from_payload(cls, common: Dict[str, Any], data: Dict[str, Any]) -> "Interruption":
        return cls(**common)


@dataclass(frozen=True)
class ToolAuthInterruption(Interruption):
    kind: ClassVar[InterruptionKind] = InterruptionKind.TOOL_AUTH

    challenge: Optional[AuthChallenge] = None

    @property
    def authorization_url(self) -> Optional[str]:
        return self.challenge.authorization_url if self.challenge else None

    def _payload_dict(self) -> Dict[str, Any]:
        return {
            "tool_call_id": self.tool_call_id,
            "authorization_url": self.authorization_url,
            "challenge": self.challenge.to_dict() if self.challenge else None,
        }

    @classmethod
    def _from_payload(cls, common, data):
        raw = data.get("challenge")
        challenge = None
        if raw:
            challenge = AuthChallenge(
                auth_key=raw["auth_key"],
                authorization_url=raw.get("authorization_url"),
                scopes=tuple(raw.get("scopes") or ()),
                scheme=raw.get("scheme", "oauth2"),
            )
        return cls(challenge=challenge, **common)


@dataclass(frozen=True)
class ElicitationInterruption(Interruption):
    kind: ClassVar[InterruptionKind] = InterruptionKind.ELICITATION

    request: Optional[ElicitationRequest] = None

    @property
    def session_id(self) -> str:
        return self.state.run_id

    def _payload_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict() if self.request else None,
            "session_id": self.session_id,
        }

    @classmethod
    def _from_payload(cls, common, data):
        raw = data.get("request")
        request = ElicitationRequest.from_dict(raw) if raw else None
        return cls(request=request, **common)


@dataclass(frozen=True)
class ClarificationInterruption(Interruption):
    kind: ClassVar[InterruptionKind] = InterruptionKind.CLARIFICATION

    question: str = ""
    options: Tuple[ClarificationOption, ...] = ()
    context: Optional[Dict[str, Any]] = None

    @property
    def clarification_id(self) -> str:
        return self.id

    def find_option(self, selected: str) -> Optional[ClarificationOption]:
        """Match a selection by option id first, then by label."""
        for option in self.options:
            if option.id == selected:
                return option
        for option in self.options:
            if option.label == selected:
                return option
        return None

    def _payload_dict(self) -> Dict[str, Any]:
        return {
            "clarification_id": self.clarification_id,
            "question": self.question,
            "options": [o.to_dict() for o in self.options],
            "context": self.context,
        }

    @classmethod
    def _from_payload(cls, common, data):
        return cls(
            question=data.get("question", ""),
            options=tuple(ClarificationOption(**o) for o in data.get("options", [])),
            context=data.get("context"),
            **common,
        )

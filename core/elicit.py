"""
core/elicit.py - Elicitation Schemas and Answers

Elicitation asks a human for structured input through a flat form. This
module builds the form schemas used by the ToolContext convenience helpers
and validates the answers that come back.

Supported property types: string, number, integer, boolean.
Supported constraints: enum, minLength, maxLength, minimum, maximum,
format (email, uri, date, date-time).

Rules:
- Schemas are plain JSON Schema dicts
- Accepted content is validated with jsonschema (format checker enabled)
- Declined/cancelled answers never carry content
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum

from jsonschema import Draft7Validator, FormatChecker, SchemaError


ALLOWED_PROPERTY_TYPES = {"string", "number", "integer", "boolean"}


class ElicitationAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ElicitationResponse:
    """A human's answer to an elicitation request.

    Attributes:
        action: accept, decline or cancel
        content: Form values (only for accept)
    """
    action: ElicitationAction
    content: Optional[Dict[str, Any]] = None

    @classmethod
    def accept(cls, content: Dict[str, Any]) -> "ElicitationResponse":
        return cls(action=ElicitationAction.ACCEPT, content=dict(content))

    @classmethod
    def decline(cls) -> "ElicitationResponse":
        return cls(action=ElicitationAction.DECLINE)

    @classmethod
    def cancel(cls) -> "ElicitationResponse":
        return cls(action=ElicitationAction.CANCEL)

    @property
    def accepted(self) -> bool:
        return self.action == ElicitationAction.ACCEPT

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action.value}
        if self.content is not None:
            data["content"] = self.content
        return data

    @classmethod
    def from_value(cls, value: Any) -> "ElicitationResponse":
        """Coerce a stored resolution into a response.

        A bare dict without an "action" key is treated as accepted content.
        """
        if isinstance(value, ElicitationResponse):
            return value
        if isinstance(value, dict) and "action" in value:
            return cls(action=ElicitationAction(value["action"]), content=value.get("content"))
        if isinstance(value, dict):
            return cls.accept(value)
        raise ValueError(f"Cannot interpret elicitation resolution: {value!r}")


def check_schema(schema: Dict[str, Any]) -> None:
    """Reject schemas that are not flat forms.

    Raises:
        ValueError: If the schema is not a flat object of primitive properties
    """
    if schema.get("type") != "object":
        raise ValueError("Elicitation schema must have type 'object'")
    for name, prop in schema.get("properties", {}).items():
        if prop.get("type") not in ALLOWED_PROPERTY_TYPES:
            raise ValueError(
                f"Elicitation property '{name}' must be one of {sorted(ALLOWED_PROPERTY_TYPES)}"
            )
    try:
        Draft7Validator.check_schema(schema)
    except SchemaError as e:
        raise ValueError(f"Invalid elicitation schema: {e.message}") from e


def validation_errors(schema: Dict[str, Any], content: Dict[str, Any]) -> List[str]:
    """Return human-readable problems with content (empty when valid)."""
    validator = Draft7Validator(schema, format_checker=FormatChecker())
    errors = []
    for error in sorted(validator.iter_errors(content), key=lambda e: list(e.path)):
        location = ".".join(str(p) for p in error.path) or "content"
        errors.append(f"{location}: {error.message}")
    return errors


def validate_elicitation_response(schema: Dict[str, Any], response: ElicitationResponse) -> None:
    """Validate an answer against the schema it was requested with.

    Raises:
        ValueError: If accepted content is missing or does not satisfy the schema
    """
    if not response.accepted:
        return
    if response.content is None:
        raise ValueError("Accepted elicitation response must carry content")
    errors = validation_errors(schema, response.content)
    if errors:
        raise ValueError("Elicitation response is invalid: " + "; ".join(errors))


def _prune(prop: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in prop.items() if v is not None}


def text_schema(
    message: str,
    title: Optional[str] = None,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    required: bool = True,
) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "text": _prune({
                "type": "string",
                "title": title or "Text Input",
                "description": message,
                "minLength": min_length,
                "maxLength": max_length,
            }),
        },
        "required": ["text"] if required else [],
    }


def confirmation_schema(message: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "confirmed": {
                "type": "boolean",
                "title": "Confirmation",
                "description": message,
                "default": False,
            },
        },
        "required": ["confirmed"],
    }


def choice_schema(
    message: str,
    choices: List[str],
    title: Optional[str] = None,
    labels: Optional[List[str]] = None,
) -> Dict[str, Any]:
    if not choices:
        raise ValueError("A choice needs at least one option")
    prop: Dict[str, Any] = {
        "type": "string",
        "title": title or "Selection",
        "description": message,
        "enum": list(choices),
    }
    if labels:
        prop["enumNames"] = list(labels)
    return {"type": "object", "properties": {"choice": prop}, "required": ["choice"]}


def number_schema(
    message: str,
    title: Optional[str] = None,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    integer: bool = False,
) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "number": _prune({
                "type": "integer" if integer else "number",
                "title": title or "Number",
                "description": message,
                "minimum": minimum,
                "maximum": maximum,
            }),
        },
        "required": ["number"],
    }


def contact_info_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "title": "Full Name",
                "description": "Your full name",
                "minLength": 1,
            },
            "email": {
                "type": "string",
                "title": "Email Address",
                "description": "Your email address",
                "format": "email",
            },
            "phone": {
                "type": "string",
                "title": "Phone Number",
                "description": "Your phone number (optional)",
            },
        },
        "required": ["name", "email"],
    }

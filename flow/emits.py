"""
flow/emits.py - Event Delivery

Buffered-mode event delivery. The turn loop hands every event to
RunConfig.on_event; a failing callback is logged and never aborts the run.

CallbackRegistry lets callers subscribe per event kind instead of writing
one big callback:

    registry = CallbackRegistry()
    registry.on(EventKind.TOOL_CALL_END, lambda e: print(e.tool_name, e.status))
    registry.on_any(audit_log.append)
    config = RunConfig(catalog, gateway, on_event=registry)
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Union

from core.events import EventKind, TraceEvent

logger = logging.getLogger(__name__)

Handler = Callable[[TraceEvent], None]


def safe_emit(callback: Optional[Handler], event: TraceEvent) -> None:
    """Deliver one event; callback exceptions are logged, not raised."""
    if callback is None:
        return
    try:
        callback(event)
    except Exception as e:
        logger.warning(f"Event callback failed on {event.kind.value}: {e}", exc_info=True)


class CallbackRegistry:
    """Dispatches events to handlers registered per EventKind."""

    def __init__(self):
        self._handlers: Dict[EventKind, List[Handler]] = defaultdict(list)
        self._any: List[Handler] = []

    def on(self, kind: Union[EventKind, str], handler: Handler) -> Handler:
        """Register handler for one kind. Returns the handler (usable as a decorator helper)."""
        self._handlers[EventKind(kind)].append(handler)
        return handler

    def on_any(self, handler: Handler) -> Handler:
        self._any.append(handler)
        return handler

    def off(self, kind: Union[EventKind, str], handler: Handler) -> None:
        handlers = self._handlers.get(EventKind(kind), [])
        if handler in handlers:
            handlers.remove(handler)

    def __call__(self, event: TraceEvent) -> None:
        for handler in self._handlers.get(event.kind, []) + self._any:
            safe_emit(handler, event)

"""
store/short.py - In-Memory Resolution Store

This module implements an in-memory ResolutionStore.

Rules:
- Not persistent (resets on restart)
- Good for single-process servers and tests
- Can be upgraded to a persistent store later
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from core.pauses import Interruption
from .bases import ResolutionStore

logger = logging.getLogger(__name__)


class InMemoryResolutionStore(ResolutionStore):
    """Keeps interruptions and their answers in dictionaries."""

    def __init__(self):
        self._pending: Dict[str, Interruption] = {}
        self._resolved: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def add_pending(self, interruption: Interruption) -> None:
        async with self._lock:
            self._pending[interruption.id] = interruption
        logger.debug(f"Pending {interruption.kind.value} {interruption.id} (run {interruption.run_id})")

    async def submit_resolution(self, interruption_id: str, value: Any) -> bool:
        async with self._lock:
            interruption = self._pending.pop(interruption_id, None)
            if interruption is None:
                logger.warning(f"Resolution for unknown or already resolved interruption {interruption_id}")
                return False
            self._resolved.setdefault(interruption.run_id, {})[interruption_id] = value
        return True

    async def list_pending(self, run_id: Optional[str] = None) -> List[Interruption]:
        async with self._lock:
            return [
                i for i in self._pending.values()
                if run_id is None or i.run_id == run_id
            ]

    async def resolutions_for(self, run_id: str) -> Dict[str, Any]:
        async with self._lock:
            return dict(self._resolved.get(run_id, {}))

    async def clear_run(self, run_id: str) -> None:
        async with self._lock:
            self._resolved.pop(run_id, None)
            for interruption_id in [k for k, i in self._pending.items() if i.run_id == run_id]:
                del self._pending[interruption_id]

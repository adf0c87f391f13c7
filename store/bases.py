"""
store/bases.py - Resolution Store Interface

This module defines the abstract interface for the collaborator that keeps
interruptions between the moment a run suspends and the moment a human
answers.

Responsibilities:
- Remember pending interruptions
- Accept resolutions submitted out-of-band (forms, OAuth callbacks, choices)
- Hand the submitted resolutions back when the run is resumed

Rules:
- Stores are pluggable (memory -> SQLite -> Postgres)
- The engine never calls a store itself; callers bridge with flow/pause.py
- Implementations must be safe for concurrent use across runs
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from core.pauses import Interruption


class ResolutionStore(ABC):
    """Abstract base class for resolution stores."""

    @abstractmethod
    async def add_pending(self, interruption: Interruption) -> None:
        """Remember an interruption awaiting resolution.

        Args:
            interruption: Interruption returned in an Interrupted outcome
        """
        pass

    @abstractmethod
    async def submit_resolution(self, interruption_id: str, value: Any) -> bool:
        """Record the answer to a pending interruption.

        Args:
            interruption_id: Id of the interruption being answered
            value: The resolution value

        Returns:
            True if the interruption was pending and is now resolved,
            False if it is unknown or already resolved
        """
        pass

    @abstractmethod
    async def list_pending(self, run_id: Optional[str] = None) -> List[Interruption]:
        """List unresolved interruptions, optionally for one run."""
        pass

    @abstractmethod
    async def resolutions_for(self, run_id: str) -> Dict[str, Any]:
        """Submitted resolutions of a run, keyed by interruption id."""
        pass

    @abstractmethod
    async def clear_run(self, run_id: str) -> None:
        """Forget everything about a run."""
        pass

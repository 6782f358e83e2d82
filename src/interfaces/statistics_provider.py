"""Abstract base class for usage-statistics providers.

The service keeps one global counter: how many prompts have been sent.
Implementations may use SQLite (local), a hosted database, or memory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: SQLiteStatisticsProvider
# Located in: src/providers/statistics/
class IStatisticsProvider(ABC):
    """Contract for the prompt counter.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing storage if needed.  Called once at startup."""

    @abstractmethod
    async def increment_prompt_count(self) -> int:
        """Add one to the prompt counter and return the new value."""

    @abstractmethod
    async def get_statistics(self) -> dict[str, Any]:
        """Return the current counters.

        Returns
        -------
        dict
            ``{"promptCount": int, "lastUpdated": ISO-8601 str}``.
        """

    @abstractmethod
    async def reset(self) -> None:
        """Set every counter back to zero."""

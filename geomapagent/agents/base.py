"""BaseAgent ABC and phase status codes for GeoMapAgent.

Every pipeline agent inherits from BaseAgent. run() reads what it needs from
the SessionContext; the orchestrator stores the result back on the context.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from geomapagent.models.session import SessionContext

logger = logging.getLogger(__name__)


class AgentStatus:
    """Values for PhaseRecord.status."""

    OK = "OK"
    FAILED = "FAILED"


class BaseAgent(ABC):
    """Common interface for the orchestrator's agents.

    Agents keep collaborators and counters only; everything specific to one
    analysis lives on the SessionContext.
    """

    name: str = "BaseAgent"
    version: str = "1.0.0"

    @abstractmethod
    def run(self, context: "SessionContext") -> Any:
        """Run against ``context`` and return this agent's result."""

    def reset(self) -> None:
        """Drop caches and counters; the default has none."""

    def _run_timed(self, context: "SessionContext") -> Any:
        started = time.monotonic()
        try:
            result = self.run(context)
        except Exception as exc:
            logger.error("%s: failed after %.2fs: %s", self.name, time.monotonic() - started, exc)
            raise
        logger.info("%s: finished in %.2fs", self.name, time.monotonic() - started)
        return result

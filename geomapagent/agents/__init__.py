"""GeoMapAgent agents package.

All agents inherit from BaseAgent and read their input from SessionContext.
The orchestrator writes each agent's result back onto the context.
"""

from geomapagent.agents.base import AgentStatus, BaseAgent

__all__ = [
    "BaseAgent",
    "AgentStatus",
]

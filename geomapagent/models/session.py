"""Analysis session data models for GeoMapAgent.

Defines SessionState (orchestrator state machine), PhaseRecord (per-phase
timing log), and SessionContext (shared state for one process_text call).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from config.settings import MapAgentConfig
from geomapagent.utils.date_utils import utc_now

if TYPE_CHECKING:
    from geomapagent.models.geo_targets import GeoTargetSet
    from geomapagent.models.reference import ReferenceMatch


class SessionState:
    """Orchestrator states, in pipeline order."""

    IDLE = "IDLE"
    RETRIEVING = "RETRIEVING"
    REUSE_CANDIDATE = "REUSE_CANDIDATE"
    EXTRACTING = "EXTRACTING"
    VALIDATING = "VALIDATING"
    RESOLVING = "RESOLVING"
    FILTERING = "FILTERING"
    DEDUPLICATING = "DEDUPLICATING"
    READY = "READY"

    ALL = (
        IDLE, RETRIEVING, REUSE_CANDIDATE, EXTRACTING, VALIDATING,
        RESOLVING, FILTERING, DEDUPLICATING, READY,
    )


# Legal transitions; READY and any failure return to IDLE via reset()
TRANSITIONS: Dict[str, tuple] = {
    SessionState.IDLE: (SessionState.RETRIEVING,),
    SessionState.RETRIEVING: (SessionState.REUSE_CANDIDATE, SessionState.EXTRACTING),
    SessionState.REUSE_CANDIDATE: (SessionState.RESOLVING, SessionState.EXTRACTING),
    SessionState.EXTRACTING: (SessionState.VALIDATING,),
    SessionState.VALIDATING: (SessionState.RESOLVING, SessionState.FILTERING),
    SessionState.RESOLVING: (SessionState.VALIDATING,),
    SessionState.FILTERING: (SessionState.DEDUPLICATING,),
    SessionState.DEDUPLICATING: (SessionState.READY,),
    SessionState.READY: (SessionState.IDLE,),
}


@dataclass
class PhaseRecord:
    """One orchestrator phase: name, wall-clock span and outcome."""

    phase_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str = "OK"

    @property
    def elapsed_seconds(self) -> float:
        """Seconds between start and end; 0.0 while the phase is running."""
        return (self.end_time - self.start_time).total_seconds() if self.end_time else 0.0


@dataclass
class SessionContext:
    """Shared state for one process_text() call.

    Agents read the source text and upstream results from here; the
    orchestrator writes each phase's output back before the next phase runs.
    """

    config: MapAgentConfig
    session_id: str
    source_text: str
    source_url: Optional[str] = None

    # ── Phase outputs ──────────────────────────────────────────────────────────
    reference_match: Optional["ReferenceMatch"] = None
    target_set: Optional["GeoTargetSet"] = None
    validation_reports: List[Any] = field(default_factory=list)

    # ── Session metadata ───────────────────────────────────────────────────────
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    phase_log: List[PhaseRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def log_phase_start(self, phase_name: str) -> PhaseRecord:
        """Open a PhaseRecord for ``phase_name`` and append it to the log."""
        record = PhaseRecord(phase_name=phase_name, start_time=utc_now())
        self.phase_log.append(record)
        return record

    def log_phase_end(self, record: PhaseRecord, status: str = "OK") -> None:
        """Stamp ``record`` with its end time and final status."""
        record.end_time = utc_now()
        record.status = status

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

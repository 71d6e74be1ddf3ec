# ===== TYPES & INTERFACES =====
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional, Dict, Any


class PipelineError(Exception):
    """Base class for failures that abort a sync run."""


class PipelineStage(str, Enum):
    IDLE = "idle"
    CHECK_STALENESS = "check_staleness"
    COLLECTING = "collecting"
    ENRICHING = "enriching"
    RECONCILING = "reconciling"
    PERSISTING = "persisting"
    PUBLISHING = "publishing"
    DONE = "done"


@dataclass
class RunReport:
    """
    Outcome of one pipeline invocation. This is the only thing callers see:
    failures are reported through `success`/`error`, never raised.
    """
    started_at: str
    success: bool = False
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None
    stage: PipelineStage = PipelineStage.IDLE
    accounts: int = 0
    failed_accounts: List[str] = field(default_factory=list)
    owned_total: int = 0
    previous_count: int = 0
    added: int = 0
    removed: int = 0
    refreshed: int = 0
    updated: int = 0
    enrichment_failures: int = 0
    genre_errors: int = 0
    persisted_count: int = 0
    upstream_count: int = 0
    snapshot_published: bool = False
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["stage"] = self.stage.value
        return data

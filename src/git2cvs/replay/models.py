"""Replay data models — staged operations, engine states, run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ChangeKind(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    MODIFY = "modify"


@dataclass(frozen=True, slots=True)
class StagedOperation:
    """A pending change declared to the target repository."""

    kind: ChangeKind
    path: str  # relative to the CVS checkout root
    is_binary: bool = False
    reclassified: bool = False  # modify only: text <-> binary since last write


class ReplayState(str, Enum):
    IDLE = "idle"
    LOAD_BRANCH_MAPPING = "load_branch_mapping"
    LOAD_HISTORY = "load_history"
    DIFF = "diff"
    MATERIALIZE = "materialize"
    STAGE = "stage"
    COMMIT = "commit"
    RECORD_METADATA = "record_metadata"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ReplayFailure:
    """Where and why a run stopped."""

    step: ReplayState
    error: Exception
    oid: Optional[str] = None
    branch_index: Optional[int] = None

    @property
    def kind(self) -> str:
        return type(self.error).__name__

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class CommitOutcome:
    """Bookkeeping for one replayed commit."""

    oid: str
    branch_index: int
    operations: int
    revision: str = ""


@dataclass
class ReplayResult:
    """Complete result of a replay run."""

    branch: str
    cvs_branch: Optional[str] = None
    state: ReplayState = ReplayState.IDLE
    total: int = 0
    commits: List[CommitOutcome] = field(default_factory=list)
    failure: Optional[ReplayFailure] = None
    duration_ms: float = 0.0

    @property
    def replayed(self) -> int:
        return len(self.commits)

    @property
    def ok(self) -> bool:
        return self.state == ReplayState.DONE

    @property
    def cancelled(self) -> bool:
        return self.state == ReplayState.CANCELLED

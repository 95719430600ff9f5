"""Replay — tree differ, checkout materializer, commit replay engine."""

from git2cvs.replay.differ import DiffError, FileChange, TreeDelta, diff_trees, is_binary
from git2cvs.replay.engine import REPLAY_ERRORS, ReplayEngine
from git2cvs.replay.materializer import CheckoutIOError, WorkingCheckout, materialize
from git2cvs.replay.models import (
    ChangeKind,
    CommitOutcome,
    ReplayFailure,
    ReplayResult,
    ReplayState,
    StagedOperation,
)

__all__ = [
    "REPLAY_ERRORS",
    "ChangeKind",
    "CheckoutIOError",
    "CommitOutcome",
    "DiffError",
    "FileChange",
    "ReplayEngine",
    "ReplayFailure",
    "ReplayResult",
    "ReplayState",
    "StagedOperation",
    "TreeDelta",
    "WorkingCheckout",
    "diff_trees",
    "is_binary",
    "materialize",
]

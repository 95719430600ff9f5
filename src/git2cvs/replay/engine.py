"""Commit replay engine — drives the whole git-to-CVS pipeline.

Runs strictly in order: each commit is diffed against the one before it,
written into the checkout, staged and committed before the next commit is
looked at. Every failure is fatal. Nothing is rolled back, so the
checkout and the CVS repository keep whatever partial state the failing
step left behind; the result says exactly where that was.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from git2cvs.cvs.driver import DriverError
from git2cvs.git.adapter import HistoryReadError
from git2cvs.git.models import CommitSnapshot, TreeSnapshot
from git2cvs.metadata.store import MetadataError
from git2cvs.replay.differ import DiffError, diff_trees
from git2cvs.replay.materializer import CheckoutIOError, WorkingCheckout, materialize
from git2cvs.replay.models import (
    ChangeKind,
    CommitOutcome,
    ReplayFailure,
    ReplayResult,
    ReplayState,
    StagedOperation,
)
from git2cvs.replay.protocols import BranchMetadata, HistoryProvider, TargetDriver

logger = logging.getLogger(__name__)

REPLAY_ERRORS = (HistoryReadError, DiffError, CheckoutIOError, DriverError, MetadataError)

ProgressCallback = Callable[[int, int, CommitSnapshot], None]


class ReplayEngine:
    """Replays one branch's linear history into a CVS checkout.

    The engine owns *checkout* for the whole run and lends it to one step
    at a time. *cancel* is only looked at between commits, since a staged
    but uncommitted batch must not be abandoned.
    """

    def __init__(
        self,
        history: HistoryProvider,
        driver: TargetDriver,
        metadata: BranchMetadata,
        checkout: WorkingCheckout,
        *,
        set_mtime: bool = False,
        cancel: Optional[threading.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.history = history
        self.driver = driver
        self.metadata = metadata
        self.checkout = checkout
        self.set_mtime = set_mtime
        self.cancel = cancel or threading.Event()
        self.on_progress = on_progress
        self.state = ReplayState.IDLE

    def _enter(self, state: ReplayState) -> None:
        self.state = state

    def run(self, branch: str, cvs_branch: str, *, remote: bool = False) -> ReplayResult:
        """Replay *branch*; never raises for the expected error kinds."""
        if self.state != ReplayState.IDLE:
            raise RuntimeError(f"engine already used (state {self.state.value})")

        start = time.perf_counter()
        result = ReplayResult(branch=branch)
        oid: Optional[str] = None
        index: Optional[int] = None

        try:
            self._enter(ReplayState.LOAD_BRANCH_MAPPING)
            result.cvs_branch = self.metadata.resolve_branch_mapping(branch, cvs_branch)
            already = self.metadata.count_commits(branch)
            if already:
                raise MetadataError(
                    f"branch {branch} already has {already} converted commits; "
                    "updating a converted branch is not supported"
                )

            self._enter(ReplayState.LOAD_HISTORY)
            commits = self.history.list_commits(branch, remote=remote)
            total = result.total = len(commits)

            self._enter(ReplayState.MATERIALIZE)
            self.checkout.prepare()

            # Only the previous tree and the current snapshot stay alive.
            snapshots = iter(commits)
            previous: Optional[TreeSnapshot] = None
            for index in range(total):
                if self.cancel.is_set():
                    logger.warning("cancelled before commit %d/%d", index + 1, total)
                    self._enter(ReplayState.CANCELLED)
                    break
                self._enter(ReplayState.LOAD_HISTORY)
                oid = None
                commit = next(snapshots)
                oid = commit.oid
                result.commits.append(self._replay_commit(branch, index, commit, previous))
                previous = commit.tree
                if self.on_progress is not None:
                    self.on_progress(index + 1, total, commit)
                del commit
            else:
                self._enter(ReplayState.DONE)
        except REPLAY_ERRORS as exc:
            result.failure = ReplayFailure(step=self.state, error=exc, oid=oid, branch_index=index)
            logger.error(
                "replay of %s failed during %s at commit %s (index %s): %s",
                branch, self.state.value, oid or "-", "-" if index is None else index, exc,
            )
            self._enter(ReplayState.FAILED)
        except Exception:
            self._enter(ReplayState.FAILED)
            raise
        finally:
            result.state = self.state
            result.duration_ms = round((time.perf_counter() - start) * 1000, 2)

        return result

    def _replay_commit(
        self,
        branch: str,
        index: int,
        commit: CommitSnapshot,
        previous: Optional[TreeSnapshot],
    ) -> CommitOutcome:
        self._enter(ReplayState.DIFF)
        delta = diff_trees(previous, commit.tree, self.history.read_blob)

        self._enter(ReplayState.MATERIALIZE)
        timestamp = commit.timestamp if self.set_mtime else None
        operations = materialize(delta, self.checkout, timestamp=timestamp)

        self._enter(ReplayState.STAGE)
        for op in operations:
            self._stage(op)

        self._enter(ReplayState.COMMIT)
        revision = self.driver.commit_batch(commit.message, commit.author, commit.timestamp)

        self._enter(ReplayState.RECORD_METADATA)
        self.metadata.append_commit(commit.oid, branch, index)

        if delta.is_empty:
            logger.info("commit %d %s: no file changes", index, commit.short_oid)
        else:
            logger.info(
                "commit %d %s: +%d -%d ~%d %s",
                index, commit.short_oid,
                len(delta.added), len(delta.removed), len(delta.modified),
                commit.summary,
            )
        return CommitOutcome(
            oid=commit.oid,
            branch_index=index,
            operations=len(operations),
            revision=revision,
        )

    def _stage(self, op: StagedOperation) -> None:
        logger.debug("stage %s %s%s", op.kind.value, op.path, " (binary)" if op.is_binary else "")
        if op.kind == ChangeKind.ADD:
            self.driver.stage_add(op.path, op.is_binary)
        elif op.kind == ChangeKind.REMOVE:
            self.driver.stage_remove(op.path)
        else:
            self.driver.stage_modify(op.path, op.is_binary, reclassified=op.reclassified)

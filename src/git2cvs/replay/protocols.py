"""Interfaces the replay engine depends on."""

from __future__ import annotations

from datetime import datetime
from typing import Iterator, Protocol

from git2cvs.git.models import CommitSnapshot


class CommitSource(Protocol):
    """Counted, ordered commits; snapshots may be produced lazily."""

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator[CommitSnapshot]: ...


class HistoryProvider(Protocol):
    def list_commits(self, branch: str, remote: bool = False) -> CommitSource: ...

    def read_blob(self, oid: str) -> bytes: ...


class TargetDriver(Protocol):
    def stage_add(self, path: str, is_binary: bool) -> None: ...

    def stage_remove(self, path: str) -> None: ...

    def stage_modify(self, path: str, is_binary: bool = False, reclassified: bool = False) -> None: ...

    def commit_batch(self, message: bytes, author: str, timestamp: datetime) -> str: ...


class BranchMetadata(Protocol):
    def resolve_branch_mapping(self, git: str, cvs: str) -> str: ...

    def count_commits(self, branch: str) -> int: ...

    def append_commit(self, oid: str, branch: str, branch_index: int) -> None: ...

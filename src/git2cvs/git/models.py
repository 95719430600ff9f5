"""Data models for commits and trees read from git."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional

MODE_REGULAR = "100644"
MODE_EXECUTABLE = "100755"
MODE_SYMLINK = "120000"
MODE_GITLINK = "160000"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A single blob in a git tree."""

    oid: str
    mode: str = MODE_REGULAR

    @property
    def is_executable(self) -> bool:
        return self.mode == MODE_EXECUTABLE


TreeSnapshot = Mapping[str, TreeEntry]

EMPTY_TREE: TreeSnapshot = MappingProxyType({})


@dataclass(frozen=True)
class CommitSnapshot:
    """One commit on a linear branch history, with its full file tree."""

    oid: str
    parent: Optional[str]
    author: str  # "Name <email>"
    timestamp: datetime  # committer time, timezone-aware
    message: bytes
    tree: TreeSnapshot = field(default_factory=dict, repr=False)

    @property
    def short_oid(self) -> str:
        return self.oid[:12]

    @property
    def summary(self) -> str:
        """First line of the message, decoded for display."""
        first = self.message.split(b"\n", 1)[0]
        return first.decode("utf-8", errors="replace").strip()

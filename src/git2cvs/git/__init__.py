"""Git interface layer — history provider and models."""

from git2cvs.git.adapter import CommitHistory, GitRepository, HistoryReadError
from git2cvs.git.models import EMPTY_TREE, CommitSnapshot, TreeEntry, TreeSnapshot

__all__ = [
    "EMPTY_TREE",
    "CommitHistory",
    "CommitSnapshot",
    "GitRepository",
    "HistoryReadError",
    "TreeEntry",
    "TreeSnapshot",
]

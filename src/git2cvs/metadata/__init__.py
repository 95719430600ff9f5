"""Metadata store — what has been converted, per branch."""

from git2cvs.metadata.store import (
    BranchMapping,
    CommitBranchRecord,
    MetadataError,
    MetadataStore,
)

__all__ = ["BranchMapping", "CommitBranchRecord", "MetadataError", "MetadataStore"]

"""SQLite metadata store — branch mappings and per-branch commit order.

Schema:
    CREATE TABLE branch_mappings (
        git TEXT NOT NULL PRIMARY KEY,
        cvs TEXT NOT NULL
    );
    CREATE TABLE commit_branches (
        oid TEXT NOT NULL,
        branch TEXT NOT NULL,
        branch_index INTEGER NOT NULL,
        PRIMARY KEY (oid, branch)
    );

The key columns are declared NOT NULL as well: SQLite would otherwise
accept NULL in a non-integer primary key.

Migrations are versioned through ``PRAGMA user_version``; each entry in
``MIGRATIONS`` moves the schema forward by one version.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

MIGRATIONS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS branch_mappings (
        git TEXT NOT NULL PRIMARY KEY,
        cvs TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS commit_branches (
        oid TEXT NOT NULL,
        branch TEXT NOT NULL,
        branch_index INTEGER NOT NULL,
        PRIMARY KEY (oid, branch)
    );
    """,
]


class MetadataError(Exception):
    """Raised when the store is unreachable or a constraint is violated."""


@dataclass(frozen=True)
class BranchMapping:
    git: str
    cvs: str


@dataclass(frozen=True)
class CommitBranchRecord:
    oid: str
    branch: str
    branch_index: int


class MetadataStore:
    """Bookkeeping of what has been converted, per branch."""

    def __init__(self, conn: sqlite3.Connection, path: str = ":memory:") -> None:
        self._conn = conn
        self.path = path

    @classmethod
    def open(cls, path: Path | str) -> "MetadataStore":
        """Open (creating if needed) the store at *path* and migrate it."""
        try:
            conn = sqlite3.connect(str(path))
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot open metadata store {path}: {exc}") from exc
        store = cls(conn, str(path))
        store.migrate()
        return store

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "MetadataStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---- schema ----

    @property
    def schema_version(self) -> int:
        return int(self._conn.execute("PRAGMA user_version").fetchone()[0])

    def migrate(self) -> None:
        try:
            version = self.schema_version
            for number, script in enumerate(MIGRATIONS[version:], start=version + 1):
                logger.debug("applying metadata migration V%d", number)
                self._conn.executescript(script)
                self._conn.execute(f"PRAGMA user_version = {number}")
                self._conn.commit()
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot migrate metadata store {self.path}: {exc}") from exc

    # ---- branch mappings ----

    def get_branch_mapping(self, git: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT cvs FROM branch_mappings WHERE git = ?", (git,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot read branch mapping for {git}: {exc}") from exc
        return row[0] if row else None

    def resolve_branch_mapping(self, git: str, cvs: str) -> str:
        """Return the stored CVS name for *git*, inserting *cvs* if absent."""
        existing = self.get_branch_mapping(git)
        if existing is not None:
            return existing
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO branch_mappings (git, cvs) VALUES (?, ?)", (git, cvs)
                )
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot record branch mapping {git} -> {cvs}: {exc}") from exc
        logger.info("mapped git branch %s to cvs %s", git, cvs)
        return cvs

    def list_branch_mappings(self) -> List[BranchMapping]:
        try:
            rows = self._conn.execute(
                "SELECT git, cvs FROM branch_mappings ORDER BY git"
            ).fetchall()
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot list branch mappings: {exc}") from exc
        return [BranchMapping(git=g, cvs=c) for g, c in rows]

    # ---- commit records ----

    def count_commits(self, branch: str) -> int:
        try:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM commit_branches WHERE branch = ?", (branch,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot count commits for {branch}: {exc}") from exc
        return int(row[0])

    def append_commit(self, oid: str, branch: str, branch_index: int) -> None:
        """Record that *oid* was replayed as position *branch_index*.

        Indices must be appended in order: 0, 1, 2, ... per branch.
        """
        try:
            with self._conn:
                row = self._conn.execute(
                    "SELECT COALESCE(MAX(branch_index) + 1, 0) FROM commit_branches WHERE branch = ?",
                    (branch,),
                ).fetchone()
                expected = int(row[0])
                if branch_index != expected:
                    raise MetadataError(
                        f"branch {branch}: expected branch_index {expected}, got {branch_index}"
                    )
                self._conn.execute(
                    "INSERT INTO commit_branches (oid, branch, branch_index) VALUES (?, ?, ?)",
                    (oid, branch, branch_index),
                )
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot record commit {oid} on {branch}: {exc}") from exc

    def list_commits(self, branch: str) -> List[CommitBranchRecord]:
        try:
            rows = self._conn.execute(
                "SELECT oid, branch, branch_index FROM commit_branches "
                "WHERE branch = ? ORDER BY branch_index",
                (branch,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise MetadataError(f"cannot list commits for {branch}: {exc}") from exc
        return [CommitBranchRecord(oid=o, branch=b, branch_index=i) for o, b, i in rows]

    def branch_indices(self, branch: str) -> List[int]:
        return [record.branch_index for record in self.list_commits(branch)]

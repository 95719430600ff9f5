"""Shared test fixtures — fake history, recording driver, temp git repos."""

from __future__ import annotations

import hashlib
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from git2cvs.git.adapter import CommitHistory, HistoryReadError
from git2cvs.git.models import MODE_EXECUTABLE, MODE_REGULAR, CommitSnapshot, TreeEntry
from git2cvs.metadata.store import MetadataStore
from git2cvs.replay.materializer import WorkingCheckout

BINARY_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x01\x02"


def blob_oid(content: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


class FakeHistory:
    """In-memory history provider built commit by commit."""

    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}
        self.commits: List[CommitSnapshot] = []
        self.fail_blobs: set[str] = set()
        self.fail_commits: set[str] = set()
        self.reads: List[str] = []

    def commit(
        self,
        files: Dict[str, bytes],
        message: str = "change",
        executable: Tuple[str, ...] = (),
    ) -> CommitSnapshot:
        tree = {}
        for path, content in files.items():
            oid = blob_oid(content)
            self.blobs[oid] = content
            mode = MODE_EXECUTABLE if path in executable else MODE_REGULAR
            tree[path] = TreeEntry(oid=oid, mode=mode)
        index = len(self.commits)
        snapshot = CommitSnapshot(
            oid=hashlib.sha1(f"commit-{index}-{message}".encode()).hexdigest(),
            parent=self.commits[-1].oid if self.commits else None,
            author="Test Author <test@example.com>",
            timestamp=datetime(2021, 1, 1, tzinfo=timezone.utc) + timedelta(hours=index),
            message=message.encode() + b"\n",
            tree=tree,
        )
        self.commits.append(snapshot)
        return snapshot

    def list_commits(self, branch: str, remote: bool = False) -> CommitHistory:
        return CommitHistory([c.oid for c in self.commits], self.read_commit)

    def read_commit(self, oid: str) -> CommitSnapshot:
        if oid in self.fail_commits:
            raise HistoryReadError(f"cannot read commit {oid}")
        self.reads.append(oid)
        return next(c for c in self.commits if c.oid == oid)

    def read_blob(self, oid: str) -> bytes:
        if oid in self.fail_blobs:
            raise OSError(f"corrupt object {oid}")
        return self.blobs[oid]


class RecordingDriver:
    """Target driver that records calls and snapshots the checkout on commit."""

    def __init__(self, checkout: Optional[WorkingCheckout] = None, fail_on_commit: Optional[int] = None) -> None:
        self.checkout = checkout
        self.fail_on_commit = fail_on_commit
        self.calls: List[tuple] = []
        self.commits: List[dict] = []
        self._staged: List[tuple] = []

    def stage_add(self, path: str, is_binary: bool) -> None:
        self._staged.append(("add", path, is_binary))
        self.calls.append(("add", path, is_binary))

    def stage_remove(self, path: str) -> None:
        self._staged.append(("remove", path))
        self.calls.append(("remove", path))

    def stage_modify(self, path: str, is_binary: bool = False, reclassified: bool = False) -> None:
        self._staged.append(("modify", path, is_binary, reclassified))
        self.calls.append(("modify", path, is_binary, reclassified))

    def commit_batch(self, message: bytes, author: str, timestamp: datetime) -> str:
        from git2cvs.cvs.driver import DriverError

        self.calls.append(("commit", message))
        if self.fail_on_commit is not None and len(self.commits) == self.fail_on_commit:
            raise DriverError("commit", "cvs [commit aborted]: simulated failure")
        self.commits.append({
            "message": message,
            "author": author,
            "timestamp": timestamp,
            "staged": list(self._staged),
            "files": self.checkout.snapshot() if self.checkout is not None else None,
        })
        self._staged.clear()
        return f"1.{len(self.commits)}"


@pytest.fixture
def history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture
def checkout(tmp_path: Path) -> WorkingCheckout:
    root = tmp_path / "checkout"
    root.mkdir()
    return WorkingCheckout(root, "src")


@pytest.fixture
def store(tmp_path: Path):
    s = MetadataStore.open(tmp_path / "meta.db")
    yield s
    s.close()


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, check=True, text=True,
    )
    return result.stdout


class GitBuilder:
    """Writes files into a temporary repo and commits them."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str) -> str:
        return _git(self.path, *args)

    def commit(self, files: Dict[str, Optional[bytes]], message: str) -> str:
        for name, content in files.items():
            target = self.path / name
            if content is None:
                self.git("rm", "-q", name)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            self.git("add", name)
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> GitBuilder:
    """Create an empty temporary git repository on branch main."""
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(repo, "config", "user.email", "test@test.com")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "commit.gpgsign", "false")
    return GitBuilder(repo)

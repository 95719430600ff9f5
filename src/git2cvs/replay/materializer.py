"""Working directory materializer — applies a tree delta to the CVS checkout."""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from git2cvs.replay.differ import FileChange, TreeDelta
from git2cvs.replay.models import ChangeKind, StagedOperation

logger = logging.getLogger(__name__)

# CVS administrative directory name, present in every tracked directory.
CVS_ADMIN_DIR = "CVS"

_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class CheckoutIOError(Exception):
    """Raised when the working checkout cannot be mutated."""

    def __init__(self, path: str, operation: str, message: str) -> None:
        super().__init__(f"{operation} {path}: {message}")
        self.path = path
        self.operation = operation


class WorkingCheckout:
    """A CVS checkout whose *target* subdirectory mirrors the git tree.

    Paths handed to this class are git paths (relative to *target*); paths
    it hands to the driver are relative to *root*, where cvs runs.
    """

    def __init__(self, root: Path, target: str = "src") -> None:
        self.root = Path(root)
        target_path = PurePosixPath(target or ".")
        if target_path.is_absolute() or ".." in target_path.parts:
            raise ValueError(f"target must be a relative path inside the checkout: {target}")
        self.target = target_path
        self._binary: Dict[str, bool] = {}

    @property
    def base(self) -> Path:
        return self.root.joinpath(*self.target.parts)

    def local_path(self, path: str) -> Path:
        return self.base.joinpath(*PurePosixPath(path).parts)

    def cvs_path(self, path: str) -> str:
        return str(self.target / path)

    def classification(self, path: str) -> Optional[bool]:
        """Binary flag last written for *path*, or None if it is not tracked."""
        return self._binary.get(path)

    def track(self, path: str, binary: bool) -> Optional[bool]:
        """Record the classification written for *path*; return the old one."""
        previous = self._binary.get(path)
        self._binary[path] = binary
        return previous

    def forget(self, path: str) -> None:
        self._binary.pop(path, None)

    def prepare(self) -> None:
        """Make sure the target directory exists."""
        try:
            self.base.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CheckoutIOError(str(self.target), "mkdir", str(exc)) from exc

    def snapshot(self) -> Dict[str, bytes]:
        """Return ``{git path: content}`` for every file under the target."""
        files: Dict[str, bytes] = {}
        for dirpath, dirnames, filenames in os.walk(self.base):
            dirnames[:] = [d for d in dirnames if d != CVS_ADMIN_DIR]
            for name in filenames:
                full = Path(dirpath) / name
                rel = full.relative_to(self.base).as_posix()
                files[rel] = full.read_bytes()
        return files


def _remove(checkout: WorkingCheckout, path: str) -> None:
    local = checkout.local_path(path)
    try:
        local.unlink()
    except OSError as exc:
        raise CheckoutIOError(path, "remove", str(exc)) from exc


def _prune_empty_dirs(directory: Path) -> None:
    """Remove *directory* and its empty subdirectories, deepest first.

    Anything still holding a file (a ``CVS`` admin directory included) is
    left alone, so the final rmdir fails with ENOTEMPTY.
    """
    for dirpath, _, _ in os.walk(directory, topdown=False):
        if not os.listdir(dirpath):
            os.rmdir(dirpath)
    if directory.exists():
        directory.rmdir()


def _write(checkout: WorkingCheckout, change: FileChange, mtime: Optional[float]) -> None:
    local = checkout.local_path(change.path)
    try:
        local.parent.mkdir(parents=True, exist_ok=True)
        # A directory emptied by this delta's removals is replaced by a file.
        if local.is_dir():
            _prune_empty_dirs(local)
        with open(local, "wb") as f:
            f.write(change.content)
        mode = local.stat().st_mode
        mode = mode | _EXEC_BITS if change.is_executable else mode & ~_EXEC_BITS
        os.chmod(local, stat.S_IMODE(mode))
        if mtime is not None:
            os.utime(local, (mtime, mtime))
    except OSError as exc:
        raise CheckoutIOError(change.path, "write", str(exc)) from exc


def materialize(
    delta: TreeDelta,
    checkout: WorkingCheckout,
    *,
    timestamp: Optional[datetime] = None,
) -> List[StagedOperation]:
    """Apply *delta* to *checkout* and return the operations to stage.

    Removals run first so a path that changes between file and directory
    is cleared before it is written. Content is written byte for byte.
    """
    staged: List[StagedOperation] = []
    mtime = timestamp.timestamp() if timestamp is not None else None

    for path in delta.removed:
        _remove(checkout, path)
        checkout.forget(path)
        staged.append(StagedOperation(ChangeKind.REMOVE, checkout.cvs_path(path)))

    added = {c.path for c in delta.added}
    changes = sorted(delta.added + delta.modified, key=lambda c: c.path)
    for change in changes:
        _write(checkout, change, mtime)
        previous = checkout.track(change.path, change.is_binary)
        if change.path in added:
            op = StagedOperation(ChangeKind.ADD, checkout.cvs_path(change.path), change.is_binary)
        else:
            op = StagedOperation(
                ChangeKind.MODIFY,
                checkout.cvs_path(change.path),
                change.is_binary,
                reclassified=previous is not None and previous != change.is_binary,
            )
        staged.append(op)

    logger.debug(
        "materialized %d removals, %d writes under %s",
        len(delta.removed), len(changes), checkout.base,
    )
    return staged

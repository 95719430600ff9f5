"""CVS subprocess wrapper — checkout, staged add/remove, batch commit.

Stage calls only queue work. ``commit_batch`` issues the queued cvs
commands in dependency order and then commits everything in one go:

1. ``cvs remove`` for deleted files (already gone from disk)
2. ``cvs add`` for parent directories CVS does not know yet, shallowest first
3. ``cvs add`` for text files, then ``cvs add -kb`` for binary files
4. keyword-mode changes for files that switched between text and binary
5. ``cvs commit -F <message file>``

CVS stamps its own commit time and login name on every revision. The
author and timestamp passed to ``commit_batch`` are logged, and can be
appended to the log message, but never reach the revision metadata.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, List, Set, Tuple

logger = logging.getLogger(__name__)

_NEW_REVISION_RE = re.compile(r"^new revision: ([^;]+);", re.MULTILINE)

# Conservative fallback when the platform does not report ARG_MAX.
_DEFAULT_ARG_MAX = 131072


class DriverError(Exception):
    """Raised when a cvs invocation fails."""

    def __init__(self, operation: str, underlying_message: str) -> None:
        super().__init__(f"cvs {operation} failed: {underlying_message}")
        self.operation = operation
        self.underlying_message = underlying_message


def sanitise_module_name(name: str) -> str:
    """Turn a git branch name into something safe as a CVS name.

    ASCII letters, digits, ``-`` and ``_`` pass through; anything else
    becomes ``__u`` followed by its six-digit hex code point.
    """
    out: List[str] = []
    for ch in name:
        if ch.isascii() and (ch.isalnum() or ch in "-_"):
            out.append(ch)
        else:
            out.append(f"__u{ord(ch):06x}")
    return "".join(out)


def _arg_limit() -> int:
    try:
        arg_max = os.sysconf("SC_ARG_MAX")
    except (AttributeError, ValueError, OSError):
        arg_max = _DEFAULT_ARG_MAX
    if arg_max <= 0:
        arg_max = _DEFAULT_ARG_MAX
    # Leave room for the environment and the fixed part of the command.
    return arg_max // 2


def chunk_arguments(paths: Iterable[str], limit: int) -> Iterator[List[str]]:
    """Group *paths* so each group's combined length stays within *limit*."""
    chunk: List[str] = []
    size = 0
    for path in paths:
        cost = len(os.fsencode(path)) + 1
        if chunk and size + cost > limit:
            yield chunk
            chunk, size = [], 0
        chunk.append(path)
        size += cost
    if chunk:
        yield chunk


def _run_cvs(binary: str, args: List[str], cwd: Path, operation: str) -> str:
    """Run cvs and return its combined output. No timeout: cvs is local."""
    logger.debug("%s %s (in %s)", binary, " ".join(args), cwd)
    try:
        result = subprocess.run(
            [binary, *args],
            cwd=cwd,
            capture_output=True,
        )
    except FileNotFoundError as exc:
        raise DriverError(operation, f"{binary} is not installed or not on PATH") from exc
    except OSError as exc:
        raise DriverError(operation, str(exc)) from exc

    stdout = result.stdout.decode("utf-8", errors="replace")
    stderr = result.stderr.decode("utf-8", errors="replace")
    if result.returncode != 0:
        raise DriverError(operation, stderr.strip() or f"exit status {result.returncode}")
    return stdout + stderr


class CvsContext:
    """Entry point: which cvs binary to run."""

    def __init__(self, binary: str = "cvs") -> None:
        self.binary = binary

    def checkout(
        self,
        cvsroot: str,
        module: str,
        directory: Path,
        *,
        author_trailer: bool = False,
    ) -> "CvsDriver":
        """Check *module* out into *directory* (which must not exist yet)."""
        directory = Path(directory).absolute()
        directory.parent.mkdir(parents=True, exist_ok=True)
        _run_cvs(
            self.binary,
            ["-d", cvsroot, "checkout", "-d", directory.name, "-R", module],
            cwd=directory.parent,
            operation="checkout",
        )
        return CvsDriver(self.binary, directory, author_trailer=author_trailer)


class CvsDriver:
    """Stages changes in a CVS working copy and commits them as a batch."""

    def __init__(self, binary: str, root: Path, *, author_trailer: bool = False) -> None:
        self.binary = binary
        self.root = Path(root)
        self.author_trailer = author_trailer
        self._removes: List[str] = []
        self._text_adds: List[str] = []
        self._binary_adds: List[str] = []
        self._reclassify: List[Tuple[str, bool]] = []
        self._modified = 0

    # ---- staging ----

    def stage_add(self, path: str, is_binary: bool) -> None:
        (self._binary_adds if is_binary else self._text_adds).append(path)

    def stage_remove(self, path: str) -> None:
        self._removes.append(path)

    def stage_modify(self, path: str, is_binary: bool = False, reclassified: bool = False) -> None:
        # The new content is already on disk; cvs commit picks it up.
        self._modified += 1
        if reclassified:
            self._reclassify.append((path, is_binary))

    @property
    def pending(self) -> int:
        return (
            len(self._removes) + len(self._text_adds) + len(self._binary_adds) + self._modified
        )

    def _reset(self) -> None:
        self._removes.clear()
        self._text_adds.clear()
        self._binary_adds.clear()
        self._reclassify.clear()
        self._modified = 0

    # ---- commands ----

    def _cvs(self, args: List[str], operation: str) -> str:
        return _run_cvs(self.binary, args, cwd=self.root, operation=operation)

    def _batched(self, args: List[str], paths: List[str], operation: str) -> None:
        for chunk in chunk_arguments(paths, _arg_limit()):
            self._cvs([*args, *chunk], operation)

    def _missing_directories(self, paths: Iterable[str]) -> List[str]:
        """Parent directories of *paths* that are not under CVS control yet."""
        missing: Set[str] = set()
        for path in paths:
            for parent in PurePosixPath(path).parents:
                name = str(parent)
                if name == "." or name in missing:
                    continue
                if not (self.root / name / "CVS").is_dir():
                    missing.add(name)
        return sorted(missing, key=lambda d: (d.count("/"), d))

    def _apply_reclassification(self, path: str, is_binary: bool) -> None:
        """Switch *path*'s keyword mode, keeping the content already written."""
        local = self.root / path
        try:
            content = local.read_bytes()
            local.unlink()
        except OSError as exc:
            raise DriverError("admin", str(exc)) from exc
        self._cvs(["admin", "-kb" if is_binary else "-kkv", path], "admin")
        self._cvs(["update", "-A", path], "update")
        try:
            local.write_bytes(content)
        except OSError as exc:
            raise DriverError("update", str(exc)) from exc

    def _log_message(self, message: bytes, author: str, timestamp: datetime) -> bytes:
        if not self.author_trailer:
            return message
        trailer = f"\nGit-Author: {author}\nGit-Date: {timestamp.isoformat()}\n"
        return message.rstrip(b"\n") + b"\n" + trailer.encode("utf-8")

    def commit_batch(self, message: bytes, author: str, timestamp: datetime) -> str:
        """Commit everything staged; return the new revision numbers.

        The result is a comma-separated list in cvs output order, or an
        empty string when cvs had nothing to commit.
        """
        logger.debug("committing as %s at %s (cvs records its own)", author, timestamp.isoformat())
        try:
            if self._removes:
                self._batched(["remove"], self._removes, "remove")
            directories = self._missing_directories(self._text_adds + self._binary_adds)
            if directories:
                self._batched(["add"], directories, "add")
            if self._text_adds:
                self._batched(["add"], self._text_adds, "add")
            if self._binary_adds:
                self._batched(["add", "-kb"], self._binary_adds, "add")
            for path, is_binary in self._reclassify:
                self._apply_reclassification(path, is_binary)

            try:
                fd, msgfile = tempfile.mkstemp(prefix="git2cvs-msg-")
                with os.fdopen(fd, "wb") as f:
                    f.write(self._log_message(message, author, timestamp))
            except OSError as exc:
                raise DriverError("commit", f"cannot write log message: {exc}") from exc
            try:
                output = self._cvs(["commit", "-F", msgfile], "commit")
            finally:
                os.unlink(msgfile)
        finally:
            self._reset()

        revisions: List[str] = []
        for rev in _NEW_REVISION_RE.findall(output):
            if rev not in revisions:
                revisions.append(rev)
        return ",".join(revisions)

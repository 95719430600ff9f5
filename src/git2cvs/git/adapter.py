"""Git subprocess wrapper — branch lookup, first-parent history, blob reads."""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from git2cvs.git.models import MODE_GITLINK, CommitSnapshot, TreeEntry

logger = logging.getLogger(__name__)


class HistoryReadError(Exception):
    """Raised when the source history is unreadable or a branch is missing."""


def _run_git(
    args: list[str],
    cwd: Path,
    timeout: Optional[int] = 120,
    *,
    binary: bool = False,
    stdin: Optional[bytes] = None,
) -> str | bytes:
    """Run a git command and return stdout. Raises HistoryReadError on failure."""
    logger.debug("git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            input=stdin,
            capture_output=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise HistoryReadError("git is not installed or not on PATH")
    except subprocess.TimeoutExpired:
        raise HistoryReadError(f"git command timed out after {timeout}s: git {' '.join(args)}")

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise HistoryReadError(f"git {args[0]} failed: {stderr or f'exit status {result.returncode}'}")
    if binary:
        return result.stdout
    return result.stdout.decode("utf-8", errors="replace")


def _decode_path(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


def _parse_signature(value: bytes) -> Tuple[str, datetime]:
    """Split ``Name <email> 1700000000 +0100`` into identity and datetime."""
    text = value.decode("utf-8", errors="replace")
    ident, _, rest = text.rpartition("> ")
    parts = rest.split()
    if not ident or len(parts) != 2:
        raise HistoryReadError(f"malformed signature: {text!r}")
    seconds, offset = parts
    sign = -1 if offset.startswith("-") else 1
    try:
        minutes = int(offset[1:3]) * 60 + int(offset[3:5])
        tz = timezone(sign * timedelta(minutes=minutes))
        when = datetime.fromtimestamp(int(seconds), tz=tz)
    except ValueError as exc:
        raise HistoryReadError(f"malformed signature: {text!r}") from exc
    return ident + ">", when


def parse_commit_object(oid: str, raw: bytes) -> Tuple[Dict[str, List[bytes]], bytes]:
    """Parse a raw commit object into (headers, message).

    Header continuation lines (gpgsig, mergetag) are folded into the
    preceding header value.
    """
    head, sep, message = raw.partition(b"\n\n")
    if not sep:
        # No message at all.
        head, message = raw.rstrip(b"\n"), b""
    headers: Dict[str, List[bytes]] = {}
    last_key: Optional[str] = None
    for line in head.split(b"\n"):
        if line.startswith(b" ") and last_key is not None:
            headers[last_key][-1] += b"\n" + line[1:]
            continue
        key, _, value = line.partition(b" ")
        last_key = key.decode("ascii", errors="replace")
        headers.setdefault(last_key, []).append(value)
    if "tree" not in headers or "committer" not in headers:
        raise HistoryReadError(f"commit {oid} is missing tree or committer")
    return headers, message


class GitRepository:
    """Read-only view of a git repository: the history provider."""

    def __init__(self, path: Path, timeout: Optional[int] = 120) -> None:
        self.path = Path(path)
        self.timeout = timeout

    @classmethod
    def open(cls, path: Path | str, timeout: Optional[int] = 120) -> "GitRepository":
        repo = cls(Path(path), timeout=timeout)
        if not repo.path.is_dir():
            raise HistoryReadError(f"not a directory: {path}")
        repo._git(["rev-parse", "--git-dir"])
        return repo

    def _git(self, args: list[str], *, binary: bool = False, stdin: Optional[bytes] = None) -> str | bytes:
        return _run_git(args, cwd=self.path, timeout=self.timeout, binary=binary, stdin=stdin)

    # ---- branches ----

    def resolve_branch(self, name: str, remote: bool = False) -> str:
        """Return the commit oid at the tip of *name*."""
        ref = f"refs/remotes/{name}" if remote else f"refs/heads/{name}"
        try:
            out = self._git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        except HistoryReadError as exc:
            raise HistoryReadError(f"cannot find branch {name}") from exc
        oid = str(out).strip()
        if not oid:
            raise HistoryReadError(f"cannot find branch {name}")
        return oid

    def first_parent_history(self, tip: str) -> List[str]:
        """Commit oids from the root to *tip*, following first parents only.

        Merge commits are kept and treated as squashes of their side branch.
        """
        out = self._git(["rev-list", "--first-parent", "--reverse", tip])
        return [line for line in str(out).splitlines() if line.strip()]

    # ---- objects ----

    def read_commit(self, oid: str) -> CommitSnapshot:
        raw = self._git(["cat-file", "commit", oid], binary=True)
        headers, message = parse_commit_object(oid, bytes(raw))

        parents = headers.get("parent", [])
        author_raw = headers.get("author", headers["committer"])[0]
        author, _ = _parse_signature(author_raw)
        _, committed = _parse_signature(headers["committer"][0])
        tree_oid = headers["tree"][0].decode("ascii")

        return CommitSnapshot(
            oid=oid,
            parent=parents[0].decode("ascii") if parents else None,
            author=author,
            timestamp=committed,
            message=message,
            tree=self.read_tree(tree_oid),
        )

    def read_tree(self, tree_oid: str) -> Dict[str, TreeEntry]:
        """Return every blob path in the tree, recursively."""
        raw = bytes(self._git(["ls-tree", "-r", "-z", "--full-tree", tree_oid], binary=True))
        entries: Dict[str, TreeEntry] = {}
        for record in raw.split(b"\0"):
            if not record:
                continue
            meta, _, path = record.partition(b"\t")
            try:
                mode, kind, oid = meta.decode("ascii").split(" ")
            except ValueError as exc:
                raise HistoryReadError(f"malformed tree entry in {tree_oid}: {record!r}") from exc
            name = _decode_path(path)
            if kind != "blob" or mode == MODE_GITLINK:
                logger.debug("skipping %s entry %s", kind, name)
                continue
            entries[name] = TreeEntry(oid=oid, mode=mode)
        return entries

    def read_blob(self, oid: str) -> bytes:
        return bytes(self._git(["cat-file", "blob", oid], binary=True))

    # ---- history provider ----

    def verify_objects(self, oids: List[str]) -> None:
        """Check that every commit in *oids* and its root tree can be read."""
        if not oids:
            return
        names = [name for oid in oids for name in (oid, f"{oid}^{{tree}}")]
        out = self._git(["cat-file", "--batch-check"], stdin="".join(f"{n}\n" for n in names).encode())
        lines = str(out).splitlines()
        if len(lines) != len(names):
            raise HistoryReadError(f"git cat-file --batch-check returned {len(lines)} of {len(names)} objects")
        for name, line in zip(names, lines):
            if len(line.split()) != 3:
                raise HistoryReadError(f"unreadable object {name}: {line.strip()}")

    def list_commits(self, branch: str, remote: bool = False) -> "CommitHistory":
        """Return the branch's linear history, oldest first.

        The commit list and the existence of every commit and root tree are
        checked up front so unreadable history fails the run before the
        target repository is touched. Snapshots are read on iteration.
        """
        tip = self.resolve_branch(branch, remote=remote)
        oids = self.first_parent_history(tip)
        self.verify_objects(oids)
        logger.info("branch %s: %d commits on first-parent history", branch, len(oids))
        return CommitHistory(oids, self.read_commit)


class CommitHistory:
    """Ordered commit oids whose snapshots are read one at a time."""

    def __init__(self, oids: List[str], read_commit: Callable[[str], CommitSnapshot]) -> None:
        self.oids = oids
        self._read_commit = read_commit

    def __len__(self) -> int:
        return len(self.oids)

    def __iter__(self) -> Iterator[CommitSnapshot]:
        for oid in self.oids:
            yield self._read_commit(oid)

"""Tree differ — minimal add/remove/modify set between two tree snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from git2cvs.git.models import EMPTY_TREE, TreeEntry, TreeSnapshot

# Same window git itself inspects when guessing whether a blob is binary.
BINARY_SNIFF_BYTES = 8000

_TEXT_CONTROL = frozenset(b"\t\n\r\f\b\x1b")


class DiffError(Exception):
    """Raised when a blob needed for a delta cannot be read."""

    def __init__(self, path: str, oid: str, message: str) -> None:
        super().__init__(f"cannot read {path} ({oid[:12]}): {message}")
        self.path = path
        self.oid = oid


def is_binary(content: bytes) -> bool:
    """Classify *content* as binary from its raw bytes.

    A NUL byte in the sniff window is decisive. Otherwise content is binary
    when non-printable control bytes exceed one per 128 printable bytes.
    """
    window = content[:BINARY_SNIFF_BYTES]
    if b"\0" in window:
        return True
    printable = nonprintable = 0
    for byte in window:
        if byte == 0x7F or (byte < 0x20 and byte not in _TEXT_CONTROL):
            nonprintable += 1
        else:
            printable += 1
    return (printable >> 7) < nonprintable


@dataclass(frozen=True, slots=True)
class FileChange:
    """An added or modified path with its resolved content."""

    path: str
    oid: str
    content: bytes = field(repr=False)
    is_binary: bool = False
    is_executable: bool = False


@dataclass
class TreeDelta:
    """Paths to add, remove and modify to turn one snapshot into another."""

    added: List[FileChange] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[FileChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def __len__(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)


BlobReader = Callable[[str], bytes]


def _resolve(path: str, entry: TreeEntry, read_blob: BlobReader) -> FileChange:
    try:
        content = read_blob(entry.oid)
    except Exception as exc:
        raise DiffError(path, entry.oid, str(exc)) from exc
    return FileChange(
        path=path,
        oid=entry.oid,
        content=content,
        is_binary=is_binary(content),
        is_executable=entry.is_executable,
    )


def diff_trees(
    previous: Optional[TreeSnapshot],
    current: TreeSnapshot,
    read_blob: BlobReader,
) -> TreeDelta:
    """Compute the delta from *previous* to *current*.

    ``previous=None`` means the empty tree, so every path is added. Paths
    whose blob and mode are unchanged are omitted. Renames show up as a
    removal plus an addition.
    """
    before = previous if previous is not None else EMPTY_TREE
    delta = TreeDelta()

    delta.removed = sorted(path for path in before if path not in current)

    for path in sorted(current):
        entry = current[path]
        old = before.get(path)
        if old is None:
            delta.added.append(_resolve(path, entry, read_blob))
        elif old != entry:
            delta.modified.append(_resolve(path, entry, read_blob))

    return delta

"""Configuration schema — dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

OutputFormat = Literal["terminal", "json", "yaml"]
LogLevel = Literal["debug", "info", "warning", "error"]

OUTPUT_FORMATS = ("terminal", "json", "yaml")
LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class CvsConfig:
    binary: str = "cvs"
    cvsroot: Optional[str] = None  # falls back to $CVSROOT
    module: str = "."  # module to check out
    target: str = "src"  # directory inside the checkout that mirrors git; "." for top level
    author_trailer: bool = False  # append Git-Author/Git-Date to log messages


@dataclass
class GitConfig:
    remote: bool = False  # look the branch up under refs/remotes
    timeout: int = 120  # seconds per git invocation


@dataclass
class ReplayConfig:
    set_mtime: bool = False  # stamp written files with the commit time
    workdir: Optional[str] = None  # persistent checkout directory; temporary if unset


@dataclass
class OutputConfig:
    format: OutputFormat = "terminal"
    show_summary: bool = True


@dataclass
class LoggingConfig:
    level: LogLevel = "warning"


@dataclass
class Git2CvsConfig:
    version: str = "1.0"
    cvs: CvsConfig = field(default_factory=CvsConfig)
    git: GitConfig = field(default_factory=GitConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

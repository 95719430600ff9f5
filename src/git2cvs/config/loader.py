"""Load and merge configuration from git2cvs.toml and env vars."""

from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from git2cvs.config.defaults import CONFIG_FILENAME
from git2cvs.config.schema import (
    LOG_LEVELS,
    OUTPUT_FORMATS,
    CvsConfig,
    Git2CvsConfig,
    GitConfig,
    LoggingConfig,
    OutputConfig,
    ReplayConfig,
)


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(base: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = base / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def _merge_env_overrides(cfg: Git2CvsConfig) -> None:
    """Apply CVSROOT and GIT2CVS_* environment variable overrides."""
    if cfg.cvs.cvsroot is None and (val := os.environ.get("CVSROOT")):
        cfg.cvs.cvsroot = val
    if val := os.environ.get("GIT2CVS_CVS"):
        cfg.cvs.binary = val
    if val := os.environ.get("GIT2CVS_FORMAT"):
        cfg.output.format = val  # type: ignore[assignment]
    if val := os.environ.get("GIT2CVS_LOG_LEVEL"):
        cfg.logging.level = val.lower()  # type: ignore[assignment]
    if val := os.environ.get("GIT2CVS_WORKDIR"):
        cfg.replay.workdir = val


def validate(cfg: Git2CvsConfig) -> None:
    if cfg.output.format not in OUTPUT_FORMATS:
        raise ConfigError(f"Invalid output format: {cfg.output.format}")
    if cfg.logging.level not in LOG_LEVELS:
        raise ConfigError(f"Invalid log level: {cfg.logging.level}")
    if not isinstance(cfg.git.timeout, int) or cfg.git.timeout <= 0:
        raise ConfigError(f"git.timeout must be a positive integer, got {cfg.git.timeout!r}")
    target = Path(cfg.cvs.target)
    if target.is_absolute() or ".." in target.parts:
        raise ConfigError(f"cvs.target must be relative to the checkout: {cfg.cvs.target}")


def load_config(
    base: Optional[Path] = None,
    config_override: Optional[str] = None,
) -> Git2CvsConfig:
    """Load, validate, and return a Git2CvsConfig."""
    config_path = find_config_file(base or Path.cwd(), config_override)

    if config_path is None:
        cfg = Git2CvsConfig()
    else:
        raw = _parse_toml(config_path)
        try:
            cfg = Git2CvsConfig(
                version=raw.get("version", "1.0"),
                cvs=_build_section(raw, CvsConfig, "cvs"),
                git=_build_section(raw, GitConfig, "git"),
                replay=_build_section(raw, ReplayConfig, "replay"),
                output=_build_section(raw, OutputConfig, "output"),
                logging=_build_section(raw, LoggingConfig, "logging"),
            )
        except TypeError as exc:
            raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc

    _merge_env_overrides(cfg)
    validate(cfg)
    return cfg

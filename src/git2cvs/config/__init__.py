"""Configuration loading, schema, and defaults."""

from git2cvs.config.loader import ConfigError, load_config
from git2cvs.config.schema import Git2CvsConfig

__all__ = ["ConfigError", "Git2CvsConfig", "load_config"]

"""YAML reporter — same document as the JSON report."""

from __future__ import annotations

import yaml

from git2cvs.output.json_report import to_dict
from git2cvs.replay.models import ReplayResult


def render(result: ReplayResult) -> str:
    return yaml.safe_dump(to_dict(result), sort_keys=False, default_flow_style=False)

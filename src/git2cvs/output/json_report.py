"""JSON reporter for scripted runs."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from git2cvs.replay.models import ReplayResult


def to_dict(result: ReplayResult) -> Dict[str, Any]:
    """Convert ReplayResult to a JSON-serialisable dict."""
    commits: List[Dict[str, Any]] = []
    for c in result.commits:
        commits.append({
            "oid": c.oid,
            "branch_index": c.branch_index,
            "operations": c.operations,
            **({"revision": c.revision} if c.revision else {}),
        })

    failure = None
    if result.failure is not None:
        failure = {
            "step": result.failure.step.value,
            "error": result.failure.kind,
            "message": result.failure.message,
            "oid": result.failure.oid,
            "branch_index": result.failure.branch_index,
        }

    return {
        "version": "1.0",
        "branch": result.branch,
        "cvs_branch": result.cvs_branch,
        "state": result.state.value,
        "replayed": result.replayed,
        "total": result.total,
        "commits": commits,
        "failure": failure,
        "duration_ms": result.duration_ms,
    }


def render(result: ReplayResult) -> str:
    """Return formatted JSON string."""
    return json.dumps(to_dict(result), indent=2)

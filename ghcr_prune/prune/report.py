"""Run outputs: ``deleted-count`` and ``deleted-json``.

Outputs can go to a JSON file and, when running as a GitHub Actions step,
to the file named by ``GITHUB_OUTPUT``.
"""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path

from ghcr_prune.prune.executor import PruneResult


def deleted_json(result: PruneResult) -> str:
    """Deleted versions as a JSON array of package API payloads."""
    return json.dumps([version.to_dict() for version in result.deleted], indent=1)


def write_json_output(result: PruneResult, path: str | Path) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(deleted_json(result) + "\n", encoding="utf-8")
    return output


def write_github_outputs(result: PruneResult, path: str | Path | None = None) -> bool:
    """Append step outputs to ``GITHUB_OUTPUT``; returns False when unset."""
    target = path or os.environ.get("GITHUB_OUTPUT")
    if not target:
        return False

    delimiter = f"ghcr_prune_{uuid.uuid4().hex}"
    with open(target, "a", encoding="utf-8") as f:
        f.write(f"deleted-count={result.deleted_count}\n")
        f.write(f"deleted-json<<{delimiter}\n{deleted_json(result)}\n{delimiter}\n")
    return True

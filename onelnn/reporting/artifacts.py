"""Run artifact helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except Exception:  # pragma: no cover - git may be unavailable in tests
        return "unknown"


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    seed: int,
    results: Mapping[str, Mapping[str, float]] | None = None,
) -> str:
    """Write a manifest JSON file capturing what is needed to rerun a run.

    ``seed`` is the seed the layer was actually initialised with, which
    differs from ``config`` when the config leaves it unset.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "seed": int(seed),
        "dataset": dict(dataset_provenance),
        "results": dict(results or {}),
        "environment": {
            "python": platform.python_version(),
            "offline": bool(config.get("offline", True)),
        },
    }
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)


__all__ = ["git_sha", "write_manifest"]

"""Utility helpers for dataset loaders."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "onelnn"


def resolve_cache_dir(cache_dir: str | Path | None = None) -> Path:
    """Resolve the effective cache directory for datasets."""

    base = Path(cache_dir or os.environ.get("ONELNN_CACHE_DIR") or DEFAULT_CACHE_DIR)
    base.mkdir(parents=True, exist_ok=True)
    return base


def offline_requested() -> bool:
    """Return whether ``ONELNN_DATA_OFFLINE`` asks for offline fixtures (default on)."""

    return str(os.environ.get("ONELNN_DATA_OFFLINE", "1")) == "1"


def checksum_path(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


__all__ = ["checksum_path", "offline_requested", "resolve_cache_dir"]

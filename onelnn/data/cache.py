"""Local cache for dataset files, offline first.

Every file handed out by :func:`fetch` is written to a manifest next to the
cache so a run can say exactly which bytes it trained on.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Callable, Dict, Mapping, Sequence

from .utils import checksum_path, offline_requested, resolve_cache_dir

MANIFEST_NAME = "manifest.json"

Builder = Callable[[Path], None]
Validator = Callable[[Path], None]


class CacheError(RuntimeError):
    """Raised when a dataset file cannot be fetched or validated."""


class CacheManifest:
    """JSON index of cached files keyed by ``"<dataset>/<filename>"``."""

    def __init__(self, cache_dir: str | Path | None = None) -> None:
        self.cache_dir = resolve_cache_dir(cache_dir)
        self.path = self.cache_dir / MANIFEST_NAME
        self.entries: Dict[str, Mapping[str, object]] = {}
        if self.path.exists():
            try:
                self.entries = json.loads(self.path.read_text())
            except json.JSONDecodeError:
                # A corrupt index is rebuilt from scratch on the next record.
                self.entries = {}

    def record(self, key: str, entry: Mapping[str, object]) -> None:
        stamped = {"recorded_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
        stamped.update(entry)
        self.entries[key] = stamped
        self.path.write_text(json.dumps(self.entries, indent=2, sort_keys=True))

    def get(self, key: str) -> Mapping[str, object] | None:
        return self.entries.get(key)


def fetch(
    name: str,
    filename: str,
    *,
    mirrors: Sequence[str] = (),
    checksum: str | None = None,
    offline_path: Path | None = None,
    offline_builder: Builder | None = None,
    offline: bool | None = None,
    retries: int = 2,
    validate: Validator | None = None,
    manifest: CacheManifest | None = None,
    cache_dir: str | Path | None = None,
) -> tuple[Path, Mapping[str, object]]:
    """Return a local path for ``filename`` of dataset ``name``.

    Offline, the file lives at ``offline_path`` and is produced by
    ``offline_builder`` on first use.  Online, a previously cached copy is
    reused when it still matches ``checksum``; otherwise ``filename`` is
    appended to each base URL in ``mirrors`` until one download succeeds.
    ``validate`` is called on every downloaded file and should raise when the
    content is not what the caller expects.

    The second element of the result is the manifest entry for the file.
    """

    cache_root = resolve_cache_dir(cache_dir)
    manifest = manifest or CacheManifest(cache_root)
    key = f"{name}/{filename}"
    if offline is None:
        offline = offline_requested()

    if offline:
        if offline_path is None:
            raise CacheError(f"{key}: offline mode requested but no offline_path given")
        if not offline_path.exists() and offline_builder is not None:
            offline_path.parent.mkdir(parents=True, exist_ok=True)
            offline_builder(offline_path)
        if not offline_path.exists():
            raise CacheError(f"{key}: offline fixture missing at {offline_path}")
        return _remember(manifest, key, offline_path, source="", mode="offline")

    target = cache_root / name / filename
    if target.exists():
        digest = checksum_path(target)
        if checksum is None or digest == checksum:
            return _remember(manifest, key, target, source="", mode="cache", digest=digest)
        target.unlink()

    failures = []
    for base in mirrors:
        url = base.rstrip("/") + "/" + filename
        for attempt in range(retries + 1):
            try:
                _download(url, target)
                if validate is not None:
                    validate(target)
                return _remember(
                    manifest, key, target, source=url, mode="download", expected=checksum
                )
            except Exception as exc:  # pragma: no cover - network dependent
                failures.append(f"{url}: {exc}")
                target.unlink(missing_ok=True)
                time.sleep(min(2**attempt, 5))

    detail = "; ".join(failures) or "no mirrors configured"
    raise CacheError(f"{key}: download failed ({detail})")


def _download(url: str, target: Path) -> None:
    import urllib.request

    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")
    with urllib.request.urlopen(url) as response, partial.open("wb") as handle:
        for chunk in iter(lambda: response.read(1 << 16), b""):
            handle.write(chunk)
    partial.replace(target)


def _remember(
    manifest: CacheManifest,
    key: str,
    path: Path,
    *,
    source: str,
    mode: str,
    digest: str | None = None,
    expected: str | None = None,
) -> tuple[Path, Mapping[str, object]]:
    digest = digest or checksum_path(path)
    if expected and digest != expected:
        raise CacheError(f"{key}: checksum {digest} does not match {expected}")
    entry = {
        "name": key,
        "url": source,
        "local_path": str(path),
        "checksum": digest,
        "bytes": path.stat().st_size,
        "mode": mode,
    }
    manifest.record(key, entry)
    return path, entry


__all__ = ["CacheError", "CacheManifest", "fetch"]

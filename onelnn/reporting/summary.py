"""Deterministic run summarisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np

# Wall-clock timings differ between otherwise identical runs.
_UNSTABLE = {"step", "seed", "elapsed"}


def compute_auc(points: Sequence[float]) -> float:
    """Return the area-under-curve of ``points`` along an implicit step axis."""

    if not points:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    x = np.arange(len(points), dtype=np.float64)
    return float(np.trapezoid(y, x)) if hasattr(np, "trapezoid") else float(np.trapz(y, x))


def _read_records(path: Path) -> list[Mapping[str, object]]:
    if not path.exists():
        return []
    records = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line:
            records.append(json.loads(line))
    return records


def _numeric(record: Mapping[str, object]) -> dict[str, float]:
    return {
        key: float(value)
        for key, value in record.items()
        if key not in _UNSTABLE
        and isinstance(value, (int, float))
        and not isinstance(value, bool)
    }


def _summarise_split(records: list[Mapping[str, object]], tail: int) -> Mapping[str, object]:
    steps = [_numeric(r) for r in records if r.get("event") == "step"]
    final = next((_numeric(r) for r in records if r.get("event") == "pass"), {})
    tail_window = min(tail, len(steps))
    curves: dict[str, Mapping[str, float]] = {}
    for name in sorted({key for row in steps for key in row}):
        arr = np.asarray([row[name] for row in steps if name in row], dtype=np.float64)
        tail_arr = arr[-tail_window:] if tail_window else arr[:0]
        curves[name] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "tail_auc": compute_auc(tail_arr.tolist()),
        }
    return {
        "records": len(steps),
        "tail_window": tail_window,
        "progress": curves,
        "final": final,
    }


def write_summary(
    metrics_jsonl: Mapping[str, str | Path],
    out_summary_json: str | Path,
    *,
    tail: int = 32,
) -> str:
    """Summarise per-split JSONL metrics files into one JSON document.

    Only values that are stable across reruns with the same seed are kept, so
    two identical runs produce byte-identical summaries.
    """

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    splits = {
        split: _summarise_split(_read_records(Path(path)), tail)
        for split, path in metrics_jsonl.items()
    }
    summary = {"version": 1, "splits": splits}
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "write_summary"]

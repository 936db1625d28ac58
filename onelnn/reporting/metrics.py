"""Metrics sinks for training and evaluation passes."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Mapping

from .artifacts import git_sha


def _numeric(metrics: Mapping[str, object]) -> dict[str, float]:
    return {k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))}


class JsonlSink:
    """Append-only JSONL writer for pass metrics."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()

    def _write(self, event: str, step: int, metrics: Mapping[str, float]) -> None:
        record: dict[str, object] = {
            "event": event,
            "step": int(step),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self._write("step", step, metrics)

    def on_pass(self, metrics: Mapping[str, float]) -> None:
        self._write("pass", int(metrics.get("samples", 0)), metrics)


class CsvSink:
    """Write progress rows to CSV with a stable schema."""

    fieldnames = ("step", "split", "samples", "errors", "success_rate")

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def _write(self, step: int, metrics: Mapping[str, float]) -> None:
        row: dict[str, object] = {"step": int(step), "split": self.split}
        values = _numeric(metrics)
        row.update({k: values[k] for k in self.fieldnames if k in values})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self.fieldnames)
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self._write(step, metrics)

    def on_pass(self, metrics: Mapping[str, float]) -> None:
        self._write(int(metrics.get("samples", 0)), metrics)


__all__ = ["CsvSink", "JsonlSink"]

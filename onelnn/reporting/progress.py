"""Terminal progress output for training and evaluation passes."""

from __future__ import annotations

import sys
from typing import Mapping, TextIO


class ProgressPrinter:
    """Print the running success rate and the final figures of a pass."""

    def __init__(self, split: str = "train", total: int | None = None, stream: TextIO | None = None):
        self.split = split
        self.total = total
        self.stream = stream

    @property
    def label(self) -> str:
        return "training" if self.split == "train" else "testing"

    def _print(self, text: str) -> None:
        print(text, file=self.stream or sys.stdout)

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        of_total = f"/{self.total}" if self.total else ""
        self._print(
            f"  {self.label}: {step}{of_total} samples, "
            f"{int(metrics.get('errors', 0))} errors, "
            f"success {float(metrics.get('success_rate', 0.0)):.2f}%"
        )

    def on_pass(self, metrics: Mapping[str, float]) -> None:
        elapsed = float(metrics.get("elapsed", 0.0))
        rate = float(metrics.get("success_rate", 0.0))
        if self.split == "train":
            self._print(f"Training time is {elapsed:.1f} sec")
            self._print(f"training successful-rate = {rate:.2f}%")
        else:
            self._print(f"testing successful-rate = {rate:.2f}%")
            self._print(f"testing time is: {elapsed:.1f} sec")


__all__ = ["ProgressPrinter"]

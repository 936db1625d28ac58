"""Core typing contracts for onelnn."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Union

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class Sample:
    """A single image with its class label."""

    features: Array
    label: int


@dataclass(frozen=True)
class Train:
    """Run cells forward and then move their weights toward the target.

    A zero rate runs the training pass without changing any weight.
    """

    learning_rate: float

    def __post_init__(self) -> None:
        if not self.learning_rate >= 0:
            raise ValueError(f"learning_rate must be non-negative, got {self.learning_rate}")


@dataclass(frozen=True)
class Infer:
    """Run cells forward only; weights are left untouched."""


Mode = Union[Train, Infer]


@dataclass(frozen=True)
class PassStats:
    """Statistics of one completed pass over a split."""

    samples: int
    errors: int
    elapsed: float

    def __post_init__(self) -> None:
        if self.samples <= 0:
            raise ValueError("A pass must cover at least one sample")
        if not 0 <= self.errors <= self.samples:
            raise ValueError(
                f"Error count {self.errors} outside [0, {self.samples}]"
            )

    @property
    def success_rate(self) -> float:
        return 100.0 - self.errors / self.samples * 100

    def as_dict(self) -> Dict[str, float]:
        return {
            "samples": float(self.samples),
            "errors": float(self.errors),
            "success_rate": self.success_rate,
            "elapsed": self.elapsed,
        }


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`onelnn.training.pipelines.run_pipeline`."""

    train: PassStats
    test: PassStats
    seed: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    splits: Dict[str, str] = field(default_factory=dict)

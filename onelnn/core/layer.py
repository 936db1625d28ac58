"""Single-layer linear classifier built from independent cells."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, TypeVar

import numpy as np

from .targets import encode_target
from .types import Array, Infer, Mode, Sample, Train

T = TypeVar("T")


@dataclass
class Cell:
    """One class's decision unit: a weight per input feature.

    ``input`` holds the binarized copy of the last image seen and ``output``
    the normalised sum of the weights at its active positions.  Both are
    overwritten on every :meth:`compute`; only ``weight`` carries state from
    one sample to the next.
    """

    weight: Array
    input: Array = field(init=False, repr=False)
    output: float = 0.0

    def __post_init__(self) -> None:
        self.input = np.zeros(self.weight.shape[0], dtype=np.uint8)

    @property
    def size(self) -> int:
        return int(self.weight.shape[0])

    def compute(self, features: Array) -> float:
        self.input = (features != 0).astype(np.uint8)
        active = self.input.astype(bool)
        # Normalised by the full input length, not the number of active pixels.
        self.output = float(self.weight[active].sum()) / self.size
        return self.output

    def update(self, target: float, learning_rate: float) -> None:
        error = float(target) - self.output
        self.weight[self.input.astype(bool)] += error * learning_rate


@dataclass
class Layer:
    """A fixed set of ``n_outputs`` cells over ``n_inputs`` features.

    ``seed`` makes weight initialisation reproducible; when it is ``None`` a
    time-based seed is drawn and exposed as :attr:`effective_seed`.  With
    ``workers > 1`` the per-cell work of a sample fans out over a thread pool.
    """

    n_inputs: int = 784
    n_outputs: int = 10
    seed: int | None = None
    workers: int = 1
    cells: List[Cell] = field(init=False, repr=False)
    effective_seed: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if self.n_inputs <= 0 or self.n_outputs <= 0:
            raise ValueError("Layer dimensions must be positive")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        self._executor: ThreadPoolExecutor | None = None
        self.initialize(self.seed)

    def initialize(self, seed: int | None = None) -> None:
        """Allocate the cells with weights drawn uniformly from ``[0, 1)``."""

        if seed is None:
            seed = self.seed if self.seed is not None else time.time_ns()
        self.effective_seed = int(seed)
        rng = np.random.default_rng(self.effective_seed)
        self.cells = [
            Cell(weight=rng.random(self.n_inputs, dtype=np.float64))
            for _ in range(self.n_outputs)
        ]

    def compute_cell(self, index: int, features: Array) -> float:
        return self.cells[index].compute(self._check_features(features))

    def update_cell(self, index: int, target: float, learning_rate: float) -> None:
        self.cells[index].update(target, learning_rate)

    def outputs(self) -> Array:
        return np.array([cell.output for cell in self.cells], dtype=np.float64)

    def predict(self) -> int:
        """Return the index of the cell with the highest output.

        ``np.argmax`` keeps the first maximum, so ties go to the lowest index.
        """

        return int(np.argmax(self.outputs()))

    def run_on_sample(self, sample: Sample, mode: Mode) -> int:
        """Compute every cell for ``sample`` and return the predicted class."""

        features = self._check_features(sample.features)
        target = encode_target(sample.label, self.n_outputs)

        if isinstance(mode, Train):
            rate = mode.learning_rate

            def step(index: int) -> None:
                cell = self.cells[index]
                cell.compute(features)
                cell.update(target[index], rate)

        elif isinstance(mode, Infer):

            def step(index: int) -> None:
                self.cells[index].compute(features)

        else:
            raise TypeError(f"Unknown mode: {mode!r}")

        self._map_cells(step)
        return self.predict()

    def weights(self) -> Array:
        """Return a ``(n_outputs, n_inputs)`` copy of all weight vectors."""

        return np.stack([cell.weight.copy() for cell in self.cells])

    def load_weights(self, weights: Array) -> None:
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != (self.n_outputs, self.n_inputs):
            raise ValueError(
                f"Expected weights of shape {(self.n_outputs, self.n_inputs)}, "
                f"got {weights.shape}"
            )
        for cell, row in zip(self.cells, weights):
            cell.weight = row.copy()

    def parameter_count(self) -> int:
        return self.n_inputs * self.n_outputs

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "Layer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_features(self, features: Array) -> Array:
        flat = np.asarray(features).reshape(-1)
        if flat.shape[0] != self.n_inputs:
            raise ValueError(
                f"Expected {self.n_inputs} features, got {flat.shape[0]}"
            )
        return flat

    def _map_cells(self, fn: Callable[[int], T]) -> List[T]:
        indices = range(self.n_outputs)
        if self.workers == 1:
            return [fn(index) for index in indices]
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="onelnn-cell"
            )
        return list(self._executor.map(fn, indices))


__all__ = ["Cell", "Layer"]

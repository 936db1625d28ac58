"""Training and evaluation passes over a sample stream."""

from __future__ import annotations

import time
from typing import Iterable, Mapping, Sequence

from ..core.layer import Layer
from ..core.types import Infer, Mode, PassStats, Sample, Train


def run_pass(
    layer: Layer,
    samples: Iterable[Sample],
    count: int,
    mode: Mode,
    *,
    callbacks: Sequence[object] = (),
    report_every: int = 0,
) -> PassStats:
    """Feed exactly ``count`` samples through ``layer`` in order.

    Every sample's prediction is compared with its label before the next one
    is read.  A stream that ends before ``count`` samples aborts the pass.
    Callbacks exposing ``on_step(step, metrics)`` are called every
    ``report_every`` samples, and those exposing ``on_pass(metrics)`` once at
    the end.
    """

    if count < 1:
        raise ValueError(f"Sample count must be positive, got {count}")
    iterator = iter(samples)
    errors = 0
    start = time.perf_counter()
    for step in range(1, count + 1):
        try:
            sample = next(iterator)
        except StopIteration:
            raise ValueError(
                f"Sample stream exhausted after {step - 1} of {count} samples"
            ) from None
        if layer.run_on_sample(sample, mode) != sample.label:
            errors += 1
        if report_every and step % report_every == 0:
            _emit_step(callbacks, step, _progress(step, errors))

    stats = PassStats(samples=count, errors=errors, elapsed=time.perf_counter() - start)
    _emit_pass(callbacks, stats.as_dict())
    return stats


def train_layer(
    layer: Layer,
    samples: Iterable[Sample],
    count: int,
    learning_rate: float,
    **kwargs,
) -> PassStats:
    """Training pass: every cell is updated toward the one-hot target."""

    return run_pass(layer, samples, count, Train(learning_rate), **kwargs)


def evaluate_layer(
    layer: Layer,
    samples: Iterable[Sample],
    count: int,
    **kwargs,
) -> PassStats:
    """Evaluation pass: same as :func:`train_layer` without learning."""

    return run_pass(layer, samples, count, Infer(), **kwargs)


def _progress(step: int, errors: int) -> Mapping[str, float]:
    return {
        "samples": float(step),
        "errors": float(errors),
        "success_rate": 100.0 - errors / step * 100,
    }


def _emit_step(
    callbacks: Sequence[object], step: int, metrics: Mapping[str, float]
) -> None:
    for callback in callbacks:
        if hasattr(callback, "on_step"):
            callback.on_step(step, metrics)  # type: ignore[attr-defined]


def _emit_pass(callbacks: Sequence[object], metrics: Mapping[str, float]) -> None:
    for callback in callbacks:
        if hasattr(callback, "on_pass"):
            callback.on_pass(metrics)  # type: ignore[attr-defined]


__all__ = ["evaluate_layer", "run_pass", "train_layer"]

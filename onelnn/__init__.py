"""onelnn public API: a single-layer linear classifier for MNIST-style images."""

from .core import layer, targets, types  # noqa: F401
from .core.layer import Cell, Layer
from .core.targets import encode_target
from .core.types import Infer, PassStats, Sample, Train
from .training.drivers import evaluate_layer, run_pass, train_layer
from .training.pipelines import load_preset, presets, run_pipeline

__all__ = [
    "Cell",
    "Infer",
    "Layer",
    "PassStats",
    "Sample",
    "Train",
    "encode_target",
    "evaluate_layer",
    "layer",
    "load_preset",
    "presets",
    "run_pass",
    "run_pipeline",
    "targets",
    "train_layer",
    "types",
]

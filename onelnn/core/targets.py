"""Target encoding for class labels."""

from __future__ import annotations

import numpy as np

from .types import Array


def encode_target(label: int, num_classes: int) -> Array:
    """Return the one-hot target vector for ``label``.

    The vector has ``num_classes`` entries with ``1.0`` at ``label`` and
    ``0.0`` elsewhere.  Labels outside ``[0, num_classes)`` are rejected.
    """

    label = int(label)
    if not 0 <= label < num_classes:
        raise ValueError(f"Label {label} outside [0, {num_classes})")
    target = np.zeros(num_classes, dtype=np.float64)
    target[label] = 1.0
    return target


__all__ = ["encode_target"]

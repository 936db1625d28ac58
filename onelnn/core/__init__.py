"""Core numerical primitives for onelnn."""

from . import layer, targets, types

__all__ = ["layer", "targets", "types"]

"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, MutableMapping

from .idx import SampleStream

SPLITS = ("train", "test")


@dataclass(frozen=True)
class DataSpec:
    """Structural information about an image classification dataset.

    Attributes
    ----------
    n_inputs:
        Number of pixels in one flattened image.
    n_outputs:
        Number of classes; labels fall in ``[0, n_outputs)``.
    image_shape:
        ``(rows, cols)`` of one image as stored on disk.
    extra:
        Free-form metadata kept for reproducibility.
    """

    n_inputs: int
    n_outputs: int
    image_shape: tuple[int, int]
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """Description of a dataset registered in the system."""

    name: str
    open_split: Callable[[str], SampleStream]
    data_spec: DataSpec
    provenance: Dict[str, Any]
    splits: Dict[str, int]

    def open(self, split: str) -> SampleStream:
        """Open a fresh sample stream over ``split``; the caller closes it."""

        if split not in SPLITS:
            raise ValueError(f"Unknown split: {split}")
        return self.open_split(split)


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("mnist")
        def build_mnist(**kwargs):
            ...

    or directly::

        register_dataset("mnist", build_mnist)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    return _decorator


def get_dataset(
    dataset: str,
    /,
    *,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    **options: Any,
) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")

    spec = _REGISTRY[dataset](offline=offline, cache_dir=cache_dir, **options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    data_spec = spec.data_spec
    rows, cols = data_spec.image_shape
    if rows * cols != data_spec.n_inputs:
        raise ValueError(
            f"Image shape {data_spec.image_shape} does not match "
            f"n_inputs={data_spec.n_inputs}"
        )
    if data_spec.n_outputs < 1:
        raise ValueError("Datasets must define at least one class")
    for split in SPLITS:
        count = spec.splits.get(split)
        if count is None:
            raise KeyError(f"Dataset {spec.name!r} is missing split {split!r}")
        if count < 0:
            raise ValueError(f"Split {split!r} has negative sample count {count}")


__all__ = [
    "DataSpec",
    "DatasetSpec",
    "SPLITS",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]

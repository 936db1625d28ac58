"""Dataset registry and IDX sample sources."""

# Ensure built-in datasets register themselves when the package is imported.
from . import mnist as _mnist  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .idx import (
    IdxFormatError,
    SampleStream,
    open_testing_stream,
    open_training_stream,
)
from .registry import (
    DatasetSpec,
    DataSpec,
    available_datasets,
    get_dataset,
    register_dataset,
)

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "IdxFormatError",
    "SampleStream",
    "available_datasets",
    "get_dataset",
    "open_testing_stream",
    "open_training_stream",
    "register_dataset",
]

"""MNIST handwritten digits read straight from the IDX files."""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Dict

import numpy as np

from .cache import fetch
from .idx import (
    TESTING_FILES,
    TRAINING_FILES,
    IdxFormatError,
    IdxImageStream,
    IdxLabelStream,
    SampleStream,
    open_stream,
    resolve_file,
    write_images,
    write_labels,
)
from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import resolve_cache_dir

MIRRORS = (
    "https://storage.googleapis.com/cvdf-datasets/mnist/",
    "https://ossci-datasets.s3.amazonaws.com/mnist/",
)

ROWS = COLS = 28
NUM_CLASSES = 10
TRAINING_IMAGES = 60000
TESTING_IMAGES = 10000

FIXTURE_SIZES = {"train": 600, "test": 100}


def _fixture_labels(split: str) -> np.ndarray:
    count = FIXTURE_SIZES[split]
    index = np.arange(count)
    if split == "train":
        return (index % NUM_CLASSES).astype(np.uint8)
    return ((index * 7 + 3) % NUM_CLASSES).astype(np.uint8)


def _fixture_images(split: str) -> np.ndarray:
    """Procedural digit-like images: one horizontal bar per class plus speckle.

    Everything is derived from integer sequences so the fixture is identical
    on every platform.
    """

    labels = _fixture_labels(split)
    count = labels.shape[0]
    images = np.zeros((count, ROWS, COLS), dtype=np.uint8)
    offset = 0 if split == "train" else 5
    for i, label in enumerate(labels):
        row = 4 + 2 * int(label)
        shift = (i + offset) % 3 - 1
        images[i, row : row + 2, 4 + shift : 24 + shift] = 255
        flat = images[i].reshape(-1)
        speckle = ((i + offset) * 131 + np.arange(8) * 97) % (ROWS * COLS)
        flat[speckle] = np.maximum(flat[speckle], 128)
    return images


def _build_fixture(path: Path, *, split: str, kind: str) -> None:
    if kind == "images":
        write_images(path, _fixture_images(split))
    else:
        write_labels(path, _fixture_labels(split))


def _check_idx(path: Path, *, kind: str) -> None:
    stream = IdxImageStream(path) if kind == "images" else IdxLabelStream(path)
    stream.close()


def _count(path: Path) -> int:
    with IdxLabelStream(path) as labels:
        return labels.count


def _check_full_size(splits: Dict[str, int]) -> None:
    expected = {"train": TRAINING_IMAGES, "test": TESTING_IMAGES}
    for split, count in splits.items():
        if count != expected[split]:
            raise IdxFormatError(
                f"Downloaded MNIST {split} split holds {count} records, expected {expected[split]}"
            )


@register_dataset("mnist")
def build_mnist(
    *,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    data_dir: str | Path | None = None,
    **_: object,
) -> DatasetSpec:
    """Create a :class:`DatasetSpec` for MNIST.

    ``data_dir`` points at a directory that already holds the four IDX files
    (plain or gzipped) and bypasses the cache entirely.  Otherwise the files
    are downloaded from :data:`MIRRORS`, or, offline, replaced by a small
    deterministic fixture in the same format.  Downloaded files must hold
    the full :data:`TRAINING_IMAGES` and :data:`TESTING_IMAGES` records.
    """

    paths: Dict[str, tuple[Path, Path]] = {}
    provenance: Dict[str, object] = {"name": "mnist"}

    if data_dir is not None:
        root = Path(data_dir)
        for split, (images, labels) in (("train", TRAINING_FILES), ("test", TESTING_FILES)):
            paths[split] = (resolve_file(root, images), resolve_file(root, labels))
        provenance.update({"mode": "local", "data_dir": str(root)})
    else:
        cache_root = resolve_cache_dir(cache_dir)
        offline_root = cache_root / "offline" / "mnist"
        records = {}
        for split, stems in (("train", TRAINING_FILES), ("test", TESTING_FILES)):
            pair = []
            for stem, kind in zip(stems, ("images", "labels")):
                filename = f"{stem}.gz"
                path, record = fetch(
                    "mnist",
                    filename,
                    mirrors=MIRRORS,
                    offline_path=offline_root / filename,
                    offline_builder=partial(_build_fixture, split=split, kind=kind),
                    validate=partial(_check_idx, kind=kind),
                    offline=offline,
                    cache_dir=cache_root,
                )
                pair.append(path)
                records[filename] = record["checksum"]
                provenance["mode"] = record["mode"]
            paths[split] = (pair[0], pair[1])
        provenance["checksums"] = records

    splits = {split: _count(labels) for split, (_, labels) in paths.items()}
    if provenance["mode"] in ("download", "cache"):
        _check_full_size(splits)

    def open_split(split: str) -> SampleStream:
        images, labels = paths[split]
        return open_stream(images, labels)

    data_spec = DataSpec(
        n_inputs=ROWS * COLS,
        n_outputs=NUM_CLASSES,
        image_shape=(ROWS, COLS),
    )

    return DatasetSpec(
        name="mnist",
        open_split=open_split,
        data_spec=data_spec,
        provenance=provenance,
        splits=splits,
    )


__all__ = ["MIRRORS", "TESTING_IMAGES", "TRAINING_IMAGES", "build_mnist"]

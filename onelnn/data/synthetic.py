"""Seeded prototype-digit dataset written in IDX format."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import numpy as np

from .cache import fetch
from .idx import SampleStream, open_stream, write_images, write_labels
from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import resolve_cache_dir


def _make_split(
    prototypes: np.ndarray, count: int, noise: float, rng: np.random.Generator
) -> tuple[np.ndarray, np.ndarray]:
    num_classes = prototypes.shape[0]
    labels = rng.integers(0, num_classes, size=count)
    flips = rng.random((count,) + prototypes.shape[1:]) < noise
    images = np.logical_xor(prototypes[labels], flips)
    return (images * 255).astype(np.uint8), labels.astype(np.uint8)


def _make_dataset(
    *,
    rows: int,
    cols: int,
    num_classes: int,
    train_size: int,
    test_size: int,
    density: float,
    noise: float,
    seed: int,
) -> dict[str, tuple[np.ndarray, np.ndarray]]:
    rng = np.random.default_rng(seed)
    prototypes = rng.random((num_classes, rows, cols)) < density
    return {
        "train": _make_split(prototypes, train_size, noise, rng),
        "test": _make_split(prototypes, test_size, noise, rng),
    }


def _factory(
    *,
    rows: int = 28,
    cols: int = 28,
    num_classes: int = 10,
    train_size: int = 1000,
    test_size: int = 200,
    density: float = 0.15,
    noise: float = 0.05,
    seed: int = 0,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    **_: object,
) -> DatasetSpec:
    if not 1 <= num_classes <= 256:
        raise ValueError("num_classes must fit in one IDX label byte")
    options = {
        "rows": int(rows),
        "cols": int(cols),
        "num_classes": int(num_classes),
        "train_size": int(train_size),
        "test_size": int(test_size),
        "density": float(density),
        "noise": float(noise),
        "seed": int(seed),
    }
    digest = hashlib.sha256(json.dumps(options, sort_keys=True).encode()).hexdigest()
    root = resolve_cache_dir(cache_dir) / "offline" / "synthetic" / digest[:12]

    arrays: dict[str, tuple[np.ndarray, np.ndarray]] = {}

    def _arrays() -> dict[str, tuple[np.ndarray, np.ndarray]]:
        if not arrays:
            arrays.update(_make_dataset(**options))
        return arrays

    paths = {}
    for split in ("train", "test"):
        pair = []
        for kind in ("images", "labels"):
            filename = f"{split}-{kind}.idx"

            def _builder(path: Path, split: str = split, kind: str = kind) -> None:
                images, labels = _arrays()[split]
                if kind == "images":
                    write_images(path, images)
                else:
                    write_labels(path, labels)

            path, _ = fetch(
                "synthetic",
                filename,
                offline_path=root / filename,
                offline_builder=_builder,
                offline=True,
                cache_dir=cache_dir,
            )
            pair.append(path)
        paths[split] = (pair[0], pair[1])

    def open_split(split: str) -> SampleStream:
        images, labels = paths[split]
        return open_stream(images, labels)

    provenance = {"name": "synthetic", "mode": "offline", "root": str(root)}
    provenance.update(options)

    return DatasetSpec(
        name="synthetic",
        open_split=open_split,
        data_spec=DataSpec(
            n_inputs=int(rows) * int(cols),
            n_outputs=int(num_classes),
            image_shape=(int(rows), int(cols)),
        ),
        provenance=provenance,
        splits={"train": int(train_size), "test": int(test_size)},
    )


register_dataset("synthetic", _factory)

__all__ = ["_factory"]

"""Streaming reader and writer for MNIST IDX files.

Image files carry a big-endian header ``(2051, count, rows, cols)`` followed
by ``rows * cols`` unsigned bytes per image; label files carry
``(2049, count)`` followed by one unsigned byte per label.  Files ending in
``.gz`` are transparently (de)compressed.

Streams read one record per call from a single cursor, so a
:class:`SampleStream` must be consumed in order.
"""

from __future__ import annotations

import gzip
import struct
from pathlib import Path
from typing import BinaryIO, Iterator, Sequence

import numpy as np

from ..core.types import Array, Sample

IMAGE_MAGIC = 2051
LABEL_MAGIC = 2049

TRAINING_FILES = ("train-images-idx3-ubyte", "train-labels-idx1-ubyte")
TESTING_FILES = ("t10k-images-idx3-ubyte", "t10k-labels-idx1-ubyte")


class IdxFormatError(ValueError):
    """Raised when an IDX file is malformed or ends early."""


def _open_binary(path: Path, mode: str) -> BinaryIO:
    if path.suffix == ".gz":
        # Fixed mtime keeps written archives byte-identical across runs.
        return gzip.GzipFile(path, mode, mtime=0)  # type: ignore[return-value]
    return path.open(mode)


class _IdxStream:
    magic: int
    header_fields: int

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._handle: BinaryIO | None = _open_binary(self.path, "rb")
        try:
            header = struct.unpack(
                f">{self.header_fields}I", self._read_exact(4 * self.header_fields)
            )
        except Exception:
            self.close()
            raise
        if header[0] != self.magic:
            self.close()
            raise IdxFormatError(
                f"{self.path}: bad magic number {header[0]}, expected {self.magic}"
            )
        self.count = int(header[1])
        self.dims = tuple(int(d) for d in header[2:])
        self.position = 0

    @property
    def closed(self) -> bool:
        return self._handle is None

    @property
    def remaining(self) -> int:
        return self.count - self.position

    def _read_exact(self, size: int) -> bytes:
        if self._handle is None:
            raise ValueError(f"{self.path}: stream is closed")
        data = self._handle.read(size)
        if len(data) != size:
            raise IdxFormatError(
                f"{self.path}: truncated, wanted {size} bytes and got {len(data)}"
            )
        return data

    def _next_record(self, size: int) -> bytes:
        if self.position >= self.count:
            raise IdxFormatError(
                f"{self.path}: stream exhausted after {self.count} records"
            )
        data = self._read_exact(size)
        self.position += 1
        return data

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class IdxImageStream(_IdxStream):
    """Read images one at a time as flat ``uint8`` vectors."""

    magic = IMAGE_MAGIC
    header_fields = 4

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self.dims
        return rows, cols

    @property
    def record_size(self) -> int:
        rows, cols = self.dims
        return rows * cols

    def read(self) -> Array:
        data = self._next_record(self.record_size)
        return np.frombuffer(data, dtype=np.uint8)


class IdxLabelStream(_IdxStream):
    """Read labels one at a time."""

    magic = LABEL_MAGIC
    header_fields = 2

    def read(self) -> int:
        return int(self._next_record(1)[0])


class SampleStream:
    """Pair an image stream with a label stream, index for index."""

    def __init__(self, images: IdxImageStream, labels: IdxLabelStream) -> None:
        self.images = images
        self.labels = labels
        if images.count != labels.count:
            self.close()
            raise IdxFormatError(
                f"{images.path} holds {images.count} images but "
                f"{labels.path} holds {labels.count} labels"
            )

    def __len__(self) -> int:
        return self.images.count

    def read(self) -> Sample:
        return Sample(features=self.images.read(), label=self.labels.read())

    def __iter__(self) -> Iterator[Sample]:
        while self.images.remaining > 0:
            yield self.read()

    def close(self) -> None:
        self.images.close()
        self.labels.close()

    def __enter__(self) -> "SampleStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_stream(image_path: str | Path, label_path: str | Path) -> SampleStream:
    """Open a paired image/label stream, releasing both files on failure."""

    images = IdxImageStream(image_path)
    try:
        labels = IdxLabelStream(label_path)
    except Exception:
        images.close()
        raise
    return SampleStream(images, labels)


def resolve_file(root: Path, stem: str) -> Path:
    for candidate in (root / stem, root / f"{stem}.gz"):
        if candidate.exists():
            return candidate
    raise FileNotFoundError(f"No IDX file {stem!r} (or {stem}.gz) under {root}")


def open_training_stream(root: str | Path) -> SampleStream:
    root = Path(root)
    images, labels = TRAINING_FILES
    return open_stream(resolve_file(root, images), resolve_file(root, labels))


def open_testing_stream(root: str | Path) -> SampleStream:
    root = Path(root)
    images, labels = TESTING_FILES
    return open_stream(resolve_file(root, images), resolve_file(root, labels))


def write_images(path: str | Path, images: np.ndarray) -> Path:
    """Write ``(count, rows, cols)`` ``uint8`` images as an IDX file."""

    path = Path(path)
    images = np.asarray(images)
    if images.ndim != 3:
        raise ValueError("images must have shape (count, rows, cols)")
    count, rows, cols = images.shape
    path.parent.mkdir(parents=True, exist_ok=True)
    with _open_binary(path, "wb") as handle:
        handle.write(struct.pack(">4I", IMAGE_MAGIC, count, rows, cols))
        handle.write(images.astype(np.uint8).tobytes())
    return path


def write_labels(path: str | Path, labels: Sequence[int] | np.ndarray) -> Path:
    """Write labels as an IDX file."""

    path = Path(path)
    labels = np.asarray(labels).reshape(-1)
    path.parent.mkdir(parents=True, exist_ok=True)
    with _open_binary(path, "wb") as handle:
        handle.write(struct.pack(">2I", LABEL_MAGIC, labels.shape[0]))
        handle.write(labels.astype(np.uint8).tobytes())
    return path


__all__ = [
    "IMAGE_MAGIC",
    "LABEL_MAGIC",
    "TESTING_FILES",
    "TRAINING_FILES",
    "IdxFormatError",
    "IdxImageStream",
    "IdxLabelStream",
    "SampleStream",
    "open_stream",
    "open_testing_stream",
    "open_training_stream",
    "resolve_file",
    "write_images",
    "write_labels",
]

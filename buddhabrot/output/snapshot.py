"""Binary snapshots of the three histogram grids.

Layout: channel 0, 1, 2 in order, each grid row-major as little-endian
unsigned 64-bit counts. There is no header; the byte length must match the
configured dimensions exactly.
"""

from __future__ import annotations

import os

import numpy as np

from buddhabrot.engine.histogram import CHANNELS, Histograms
from buddhabrot.util.logging_setup import get_logger

SNAPSHOT_DTYPE = np.dtype("<u8")


class IncompatibleSnapshotError(ValueError):
    """A snapshot is missing, unreadable or does not match the render size."""


def snapshot_size(width: int, height: int) -> int:
    return CHANNELS * width * height * SNAPSHOT_DTYPE.itemsize


def dumps(histograms: Histograms) -> bytes:
    return histograms.counts.astype(SNAPSHOT_DTYPE, copy=False).tobytes(order="C")


def loads(data: bytes, width: int, height: int) -> Histograms:
    expected = snapshot_size(width, height)
    if len(data) != expected:
        raise IncompatibleSnapshotError(
            f"snapshot holds {len(data)} bytes, expected {expected} for {width}x{height}")
    counts = np.frombuffer(data, dtype=SNAPSHOT_DTYPE).reshape(CHANNELS, height, width)
    return Histograms(width, height, counts.copy())


def save_snapshot(path: str, histograms: Histograms) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "wb") as f:
        f.write(dumps(histograms))
    get_logger().info("Saved histogram snapshot %s (%sx%s)", path, histograms.width, histograms.height)


def load_snapshot(path: str, width: int, height: int) -> Histograms:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise IncompatibleSnapshotError(f"cannot read snapshot {path}: {e}") from e
    histograms = loads(data, width, height)
    get_logger().info("Loaded histogram snapshot %s (%sx%s)", path, width, height)
    return histograms

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from buddhabrot.engine.projector import PixelHit

CHANNELS = 3
COUNT_DTYPE = np.uint64
_ONE = COUNT_DTYPE(1)


class Histograms:
    """Per-channel visit counts, indexed ``counts[channel, row, column]``."""

    def __init__(self, width: int, height: int, counts: Optional[np.ndarray] = None):
        self.width = int(width)
        self.height = int(height)
        shape = (CHANNELS, self.height, self.width)
        if counts is None:
            counts = np.zeros(shape, dtype=COUNT_DTYPE)
        elif counts.shape != shape:
            raise ValueError(f"counts shape {counts.shape} does not match {shape}")
        self.counts = np.ascontiguousarray(counts, dtype=COUNT_DTYPE)

    @property
    def frozen(self) -> bool:
        return not self.counts.flags.writeable

    def freeze(self) -> "Histograms":
        self.counts.flags.writeable = False
        return self

    def accumulate(self, hit: PixelHit) -> None:
        if self.frozen:
            raise RuntimeError("histograms are frozen; accumulation has finished")
        for c in hit.channels:
            # add.at counts repeated pixels once per visit
            np.add.at(self.counts[c], (hit.ys, hit.xs), _ONE)

    def accumulate_all(self, hits: Iterable[PixelHit]) -> None:
        for hit in hits:
            self.accumulate(hit)

    def maxima(self) -> np.ndarray:
        return self.counts.reshape(CHANNELS, -1).max(axis=1)

    def total(self) -> int:
        return int(self.counts.sum())

    def copy(self) -> "Histograms":
        return Histograms(self.width, self.height, self.counts.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Histograms):
            return NotImplemented
        return self.counts.shape == other.counts.shape and bool(np.array_equal(self.counts, other.counts))

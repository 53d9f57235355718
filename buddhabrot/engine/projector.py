from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from buddhabrot.config import RenderConfig
from buddhabrot.engine.evaluator import Orbit


@dataclass(frozen=True)
class PixelHit:
    xs: np.ndarray
    ys: np.ndarray
    escaped_at: int
    channels: Tuple[int, ...]

    def __len__(self) -> int:
        return int(self.xs.shape[0])


def to_pixels(points: np.ndarray, cfg: RenderConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Map complex points to in-bounds pixel columns and rows."""
    scale = cfg.scale
    off_re, off_im = cfg.offset
    # round half up
    xs = np.floor(scale * (points.real + off_re) + 0.5).astype(np.int64) + cfg.width // 2
    ys = np.floor(scale * (points.imag + off_im) + 0.5).astype(np.int64) + cfg.height // 2
    keep = (xs >= 0) & (xs < cfg.width) & (ys >= 0) & (ys < cfg.height)
    return xs[keep], ys[keep]


def project(orbit: Orbit, cfg: RenderConfig) -> Optional[PixelHit]:
    """Project an orbit into a pixel hit, or None when it contributes nothing."""
    if not orbit.escaped:
        return None
    channels = cfg.classify(orbit.escaped_at)
    if not channels:
        return None
    xs, ys = to_pixels(orbit.points, cfg)
    if xs.size == 0:
        return None
    return PixelHit(xs=xs, ys=ys, escaped_at=orbit.escaped_at, channels=channels)

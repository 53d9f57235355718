"""Tone mapping of visit counts into an 8-bit RGBA raster."""

from __future__ import annotations

from enum import Enum

import numpy as np

from buddhabrot.config import RenderConfig
from buddhabrot.engine.histogram import CHANNELS, Histograms
from buddhabrot.util.logging_setup import get_logger


def _exp(x: np.ndarray, factor: float) -> np.ndarray:
    return 1.0 - np.exp(-factor * x)


def _log(x: np.ndarray, factor: float) -> np.ndarray:
    return np.log1p(factor * x)


def _sqrt(x: np.ndarray, factor: float) -> np.ndarray:
    return np.sqrt(factor * x)


def _linear(x: np.ndarray, factor: float) -> np.ndarray:
    return x


class ResponseCurve(Enum):
    EXP = "exp"
    LOG = "log"
    SQRT = "sqrt"
    LINEAR = "linear"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            value = value.lower()
            if value == "lin":
                return cls.LINEAR
            for member in cls:
                if member.value == value:
                    return member
        return None

    def __call__(self, x, factor: float) -> np.ndarray:
        return _CURVES[self](np.asarray(x, dtype=np.float64), factor)


_CURVES = {
    ResponseCurve.EXP: _exp,
    ResponseCurve.LOG: _log,
    ResponseCurve.SQRT: _sqrt,
    ResponseCurve.LINEAR: _linear,
}


def compose(histograms: Histograms, cfg: RenderConfig) -> np.ndarray:
    """Return a ``(height, width, 4)`` uint8 raster; unvisited pixels stay black."""
    logger = get_logger()
    curve = ResponseCurve(cfg.curve)
    maxima = histograms.maxima()
    logger.info("Visitations max=%s curve=%s factor=%.2f exposure=%.2f",
                maxima.tolist(), curve.value, cfg.factor, cfg.exposure)

    raster = np.zeros((histograms.height, histograms.width, 4), dtype=np.uint8)
    raster[..., 3] = 255
    visited = np.any(histograms.counts != 0, axis=0)

    for c in range(CHANNELS):
        top = float(curve(float(maxima[c]), cfg.factor))
        if top <= 0.0:
            continue
        scale = 255.0 * cfg.exposure / top
        values = curve(histograms.counts[c][visited], cfg.factor) * scale
        raster[..., c][visited] = np.clip(values, 0.0, 255.0).astype(np.uint8)
    return raster

from __future__ import annotations

import os

import numpy as np
from PIL import Image

from buddhabrot.util.logging_setup import get_logger

_JPEG_EXTS = (".jpg", ".jpeg")


def to_image(raster: np.ndarray, *, rotate: bool = False) -> Image.Image:
    if raster.ndim != 3 or raster.shape[2] not in (3, 4) or raster.dtype != np.uint8:
        raise ValueError("raster must be a (height, width, 3|4) uint8 array")
    img = Image.fromarray(np.ascontiguousarray(raster))
    if rotate:
        # upright orientation, real axis vertical
        img = img.transpose(Image.Transpose.ROTATE_270)
    return img


def write_image(raster: np.ndarray, path: str, *, rotate: bool = False) -> str:
    logger = get_logger()
    img = to_image(raster, rotate=rotate)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    if path.lower().endswith(_JPEG_EXTS):
        img.convert("RGB").save(path, format="JPEG", quality=100)
    else:
        img.save(path, optimize=True)
    logger.info("Image written: %s (%sx%s rotate=%s)", path, img.size[0], img.size[1], rotate)
    return path

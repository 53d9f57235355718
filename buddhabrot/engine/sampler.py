from __future__ import annotations

from typing import Iterator, List

import numpy as np

from buddhabrot.config import RenderConfig, SampleRegion, grid_count


def sample(region: SampleRegion, rng: np.random.Generator) -> complex:
    """Draw a seed uniformly over ``region``, independently per axis."""
    return complex(rng.uniform(region.re_min, region.re_max), rng.uniform(region.im_min, region.im_max))


def random_points(region: SampleRegion, rng: np.random.Generator, count: int) -> Iterator[complex]:
    for _ in range(count):
        yield sample(region, rng)


def grid_points(region: SampleRegion, step: float, part: int = 0, parts: int = 1) -> Iterator[complex]:
    """Scan the region column by column; ``part`` of ``parts`` takes every parts-th column."""
    cols = grid_count(region.re_min, region.re_max, step)
    rows = grid_count(region.im_min, region.im_max, step)
    for ix in range(part, cols, parts):
        re = region.re_min + ix * step
        for iy in range(rows):
            yield complex(re, region.im_min + iy * step)


def worker_seeds(seed, workers: int) -> List[np.random.SeedSequence]:
    return np.random.SeedSequence(seed).spawn(workers)


def share(total: int, workers: int, index: int) -> int:
    base, extra = divmod(total, workers)
    return base + (1 if index < extra else 0)


def seed_stream(cfg: RenderConfig, index: int, seed_seq: np.random.SeedSequence) -> Iterator[complex]:
    """Seeds for worker ``index``: its share of the random budget or its grid columns."""
    if cfg.sampling == "grid":
        return grid_points(cfg.region, cfg.grid_step, index, cfg.workers)
    rng = np.random.default_rng(seed_seq)
    return random_points(cfg.region, rng, share(cfg.samples, cfg.workers, index))

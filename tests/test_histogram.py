import random

import numpy as np
import pytest

from buddhabrot.engine.histogram import Histograms
from buddhabrot.engine.projector import PixelHit


def _hit(points, channels, length=30):
    xs = np.array([p[0] for p in points], dtype=np.int64)
    ys = np.array([p[1] for p in points], dtype=np.int64)
    return PixelHit(xs=xs, ys=ys, escaped_at=length, channels=channels)


def _random_hits(n, seed=0):
    rnd = random.Random(seed)
    hits = []
    for _ in range(n):
        pts = [(rnd.randrange(16), rnd.randrange(8)) for _ in range(rnd.randrange(1, 12))]
        chans = tuple(sorted(rnd.sample(range(3), rnd.randrange(1, 4))))
        hits.append(_hit(pts, chans))
    return hits


def test_starts_zeroed_with_row_major_shape():
    h = Histograms(16, 8)
    assert h.counts.shape == (3, 8, 16)
    assert h.counts.dtype == np.uint64
    assert h.total() == 0


def test_repeated_pixels_count_each_visit():
    h = Histograms(16, 8)
    h.accumulate(_hit([(3, 2), (3, 2), (4, 5)], (0, 2)))
    assert h.counts[0, 2, 3] == 2
    assert h.counts[2, 2, 3] == 2
    assert h.counts[0, 5, 4] == 1
    assert h.counts[1].sum() == 0


def test_accumulation_is_order_independent():
    hits = _random_hits(200)
    a = Histograms(16, 8)
    a.accumulate_all(hits)
    shuffled = list(hits)
    random.Random(99).shuffle(shuffled)
    b = Histograms(16, 8)
    b.accumulate_all(shuffled)
    assert a == b
    assert a.total() == sum(len(hit) * len(hit.channels) for hit in hits)


def test_maxima_per_channel():
    h = Histograms(4, 4)
    h.accumulate(_hit([(0, 0)] * 5, (1,)))
    h.accumulate(_hit([(1, 1)] * 2, (0, 1)))
    assert h.maxima().tolist() == [2, 5, 0]


def test_frozen_histograms_reject_writes():
    h = Histograms(4, 4).freeze()
    with pytest.raises(RuntimeError):
        h.accumulate(_hit([(0, 0)], (0,)))
    thawed = h.copy()
    thawed.accumulate(_hit([(0, 0)], (0,)))
    assert thawed.total() == 1
    assert h.total() == 0


def test_rejects_mismatched_counts():
    with pytest.raises(ValueError):
        Histograms(4, 4, np.zeros((3, 4, 5), dtype=np.uint64))

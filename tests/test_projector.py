import numpy as np

from buddhabrot.config import ChannelRange, RenderConfig
from buddhabrot.engine.evaluator import CONVERGED, Orbit, evaluate
from buddhabrot.engine.projector import project, to_pixels


def _cfg(**kw):
    base = dict(width=64, height=64, zoom=64 / 4.2, offset=(0.0, 0.0), min_length=2,
                channels=(ChannelRange(1, 10), ChannelRange(5, 50), ChannelRange(51, None)))
    base.update(kw)
    return RenderConfig(**base)


def test_affine_transform():
    cfg = _cfg(zoom=10.0, offset=(0.5, -0.25))
    xs, ys = to_pixels(np.array([0j, 1 + 1j, -0.5 + 0.25j]), cfg)
    assert xs.tolist() == [37, 47, 32]
    assert ys.tolist() == [30, 40, 32]


def test_out_of_bounds_points_are_dropped():
    cfg = _cfg()
    xs, ys = to_pixels(np.array([0j, 10 + 0j, 0 - 10j, 2.0 + 2.0j]), cfg)
    assert xs.tolist() == [32, 62]
    assert ys.tolist() == [32, 62]


def test_overlapping_ranges_route_to_every_match():
    orbit = Orbit(points=np.array([0.1 + 0j] * 7), escaped_at=7)
    hit = project(orbit, _cfg())
    assert hit.channels == (0, 1)
    assert len(hit) == 7


def test_unmatched_and_short_orbits_contribute_nothing():
    cfg = _cfg(channels=(ChannelRange(10, 20), ChannelRange(30, 40), ChannelRange(50, 60)))
    assert project(Orbit(points=np.zeros(25, dtype=complex), escaped_at=25), cfg) is None
    assert project(evaluate(3 + 3j, 100), _cfg()) is None
    assert project(CONVERGED, _cfg()) is None


def test_divisor_filters_lengths():
    cfg = _cfg(min_length=0, channels=(ChannelRange(0, None, 3), ChannelRange(0, None, 5), ChannelRange(0, None, 7)))
    assert cfg.classify(15) == (0, 1)
    assert cfg.classify(21) == (0, 2)
    assert cfg.classify(11) == ()


def test_hit_from_real_orbit():
    orbit = evaluate(0.5 + 0.5j, 100)
    hit = project(orbit, _cfg())
    assert hit.escaped_at == 5
    assert hit.channels == (0, 1)
    # the escaping point lands outside the image
    assert len(hit) == 4
    assert (hit.xs[0], hit.ys[0]) == (40, 40)

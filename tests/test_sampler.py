import numpy as np

from buddhabrot.config import RenderConfig, SampleRegion
from buddhabrot.engine.sampler import grid_points, sample, seed_stream, share, worker_seeds


def test_sample_stays_in_region():
    region = SampleRegion(-1.0, 0.5, 0.25, 0.75)
    rng = np.random.default_rng(1)
    for _ in range(500):
        c = sample(region, rng)
        assert -1.0 <= c.real < 0.5
        assert 0.25 <= c.imag < 0.75


def test_sample_is_reproducible_for_fixed_seed():
    region = SampleRegion()
    a = [sample(region, np.random.default_rng(7)) for _ in range(3)]
    b = [sample(region, np.random.default_rng(7)) for _ in range(3)]
    assert a == b


def test_worker_generators_are_independent():
    s0, s1 = worker_seeds(42, 2)
    a = np.random.default_rng(s0).random(8)
    b = np.random.default_rng(s1).random(8)
    assert not np.array_equal(a, b)
    again = np.random.default_rng(worker_seeds(42, 2)[0]).random(8)
    np.testing.assert_array_equal(a, again)


def test_share_splits_budget_exactly():
    assert [share(10, 3, i) for i in range(3)] == [4, 3, 3]
    assert sum(share(1001, 7, i) for i in range(7)) == 1001


def test_grid_scan_covers_region_once():
    region = SampleRegion(-1.0, 1.0, -1.0, 1.0)
    full = list(grid_points(region, 0.5))
    assert len(full) == 25
    assert full[0] == complex(-1.0, -1.0)
    assert full[-1] == complex(1.0, 1.0)
    parts = [list(grid_points(region, 0.5, k, 3)) for k in range(3)]
    assert sorted(sum(parts, []), key=lambda c: (c.real, c.imag)) == sorted(full, key=lambda c: (c.real, c.imag))


def test_seed_stream_random_budget():
    cfg = RenderConfig(width=8, height=8, samples=10, workers=3, seed=3)
    seeds = worker_seeds(cfg.seed, cfg.workers)
    counts = [len(list(seed_stream(cfg, i, seeds[i]))) for i in range(cfg.workers)]
    assert counts == [4, 3, 3]


def test_seed_stream_grid_matches_total():
    cfg = RenderConfig(width=8, height=8, workers=2, sampling="grid", grid_step=0.5)
    seeds = worker_seeds(0, 2)
    total = sum(len(list(seed_stream(cfg, i, seeds[i]))) for i in range(2))
    assert total == cfg.total_samples() == 81
